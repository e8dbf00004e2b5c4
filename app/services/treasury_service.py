"""
Ledgerline - Treasury Service

Cash and bank resources: cashboxes, bank accounts, card readers,
checkbooks and checks.

Cashboxes, bank accounts and card readers are each mirrored by a
system-managed detail (their "handler"), which is what treasury journal
lines post against. Handler codes are allocated from configurable
4-digit start codes, skipping codes already taken.
"""

import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Optional, Set

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import is_numeric_text, numeric_value
from app.models.taxonomy import Detail, DetailKind
from app.models.treasury import (
    BankAccount,
    CardReader,
    Cashbox,
    Check,
    Checkbook,
    CheckbookStatus,
    CheckStatus,
    CheckType,
    InstrumentLink,
    PaymentItem,
    ReceiptItem,
)
from app.schemas.treasury import (
    BankAccountCreate,
    BankAccountUpdate,
    CardReaderCreate,
    CardReaderUpdate,
    CashboxCreate,
    CashboxUpdate,
    CheckbookCreate,
    CheckbookUpdate,
    CheckUpdate,
    IncomingCheckCreate,
    OutgoingCheckCreate,
)
from app.services.code_mapping_service import (
    BANK_DETAIL_START_CODE,
    CARD_READER_DETAIL_START_CODE,
    CASHBOX_START_CODE,
    CodeMappingService,
)
from app.services.sequence_service import SequenceService
from app.utils.error_handling import (
    ConflictException,
    DuplicateEntryException,
    ErrorCode,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


DEFAULT_CASHBOX_START_CODE = 6000
DEFAULT_BANK_DETAIL_START_CODE = 6100
DEFAULT_CARD_READER_DETAIL_START_CODE = 6200

# Persian (U+06F0..U+06F9) and Arabic-Indic (U+0660..U+0669) digits
_DIGIT_TABLE = {
    **{0x06F0 + i: str(i) for i in range(10)},
    **{0x0660 + i: str(i) for i in range(10)},
}


def normalize_digits(value: str) -> str:
    """Map Persian and Arabic-Indic digits to ASCII and strip whitespace."""
    return (value or "").translate(_DIGIT_TABLE).strip()


def _clamp_code(value: int) -> int:
    return min(max(value, 1000), 9999)


class TreasuryService:
    """Service for treasury resources."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = SequenceService(db)
        self.mappings = CodeMappingService(db)

    # =========================================================================
    # HANDLER DETAILS
    # =========================================================================

    async def _next_free_code(self, start: int, extra_used: Optional[Set[str]] = None) -> str:
        """First unused 4-digit code at or after ``start``; holds the detail code lock."""
        await self.sequences.lock_detail_codes()
        used = await self.sequences.used_detail_codes()
        used.update(extra_used or set())
        for number in range(_clamp_code(start), 10000):
            candidate = f"{number:04d}"
            if candidate not in used:
                return candidate
        raise ConflictException("noFreeCode", resource_type="Detail")

    async def _create_handler(self, start_setting: str, default_start: int, title: str) -> Detail:
        start = await self.mappings.resolve_numeric_setting(start_setting, default_start)
        code = await self._next_free_code(start)
        handler = Detail(code=code, title=title[:255], kind=DetailKind.SYSTEM_MANAGED, is_active=True)
        self.db.add(handler)
        await self.db.flush()
        return handler

    async def _sync_handler(
        self,
        handler_id: Optional[uuid.UUID],
        title: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> None:
        if not handler_id:
            return
        handler = await self.db.get(Detail, handler_id)
        if handler is None:
            return
        if title is not None:
            handler.title = title[:255]
        if is_active is not None:
            handler.is_active = is_active

    async def _delete_handler(self, handler_id: Optional[uuid.UUID]) -> None:
        if not handler_id:
            return
        handler = await self.db.get(Detail, handler_id)
        if handler is not None:
            await self.db.delete(handler)

    # =========================================================================
    # CASHBOXES
    # =========================================================================

    async def list_cashboxes(self) -> List[Cashbox]:
        result = await self.db.execute(select(Cashbox).order_by(Cashbox.code))
        return list(result.scalars().all())

    async def get_cashbox(self, cashbox_id: uuid.UUID) -> Cashbox:
        cashbox = await self.db.get(Cashbox, cashbox_id)
        if not cashbox:
            raise NotFoundException("Cashbox", cashbox_id)
        return cashbox

    async def next_cashbox_code(self) -> str:
        start = await self.mappings.resolve_numeric_setting(CASHBOX_START_CODE, DEFAULT_CASHBOX_START_CODE)
        result = await self.db.execute(select(Cashbox.code))
        return await self._next_free_code(start, extra_used=set(result.scalars().all()))

    async def create_cashbox(self, data: CashboxCreate) -> Cashbox:
        """
        Create a cashbox and its handler detail sharing the same code.

        An existing detail with that code is taken over as the handler.
        """
        code = normalize_digits(data.code or "") or await self.next_cashbox_code()
        if len(code) != 4 or not code.isdigit():
            raise ValidationException("invalidWidth", field="code")
        result = await self.db.execute(select(Cashbox.id).where(Cashbox.code == code))
        if result.first() is not None:
            raise DuplicateEntryException("Cashbox", "code", code, message="duplicateCode")

        name = data.name.strip()
        result = await self.db.execute(select(Detail).where(Detail.code == code))
        handler = result.scalar_one_or_none()
        if handler is None:
            handler = Detail(code=code, title=name, kind=DetailKind.SYSTEM_MANAGED, is_active=data.is_active)
            self.db.add(handler)
        else:
            handler.title = name
            handler.kind = DetailKind.SYSTEM_MANAGED
            handler.is_active = data.is_active
        await self.db.flush()

        cashbox = Cashbox(
            code=code,
            name=name,
            handler_detail_id=handler.id,
            is_active=data.is_active,
            starting_amount=data.starting_amount,
            starting_date=data.starting_date,
        )
        self.db.add(cashbox)
        await self.db.flush()
        logger.info(f"Cashbox {code} created with handler detail {handler.id}")
        return cashbox

    async def update_cashbox(self, cashbox_id: uuid.UUID, data: CashboxUpdate) -> Cashbox:
        cashbox = await self.get_cashbox(cashbox_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            cashbox.name = changes["name"].strip()
        if changes.get("is_active") is not None:
            cashbox.is_active = changes["is_active"]
        if changes.get("starting_amount") is not None:
            cashbox.starting_amount = changes["starting_amount"]
        if "starting_date" in changes:
            cashbox.starting_date = changes["starting_date"]
        await self._sync_handler(cashbox.handler_detail_id, title=cashbox.name, is_active=cashbox.is_active)
        await self.db.flush()
        return cashbox

    async def delete_cashbox(self, cashbox_id: uuid.UUID) -> None:
        cashbox = await self.get_cashbox(cashbox_id)
        handler_id = cashbox.handler_detail_id
        await self.db.delete(cashbox)
        await self.db.flush()
        await self._delete_handler(handler_id)
        await self.db.flush()
        logger.info(f"Cashbox {cashbox.code} ({cashbox_id}) deleted")

    # =========================================================================
    # BANK ACCOUNTS
    # =========================================================================

    async def list_bank_accounts(self) -> List[BankAccount]:
        result = await self.db.execute(select(BankAccount).order_by(BankAccount.name))
        return list(result.scalars().all())

    async def get_bank_account(self, bank_account_id: uuid.UUID) -> BankAccount:
        account = await self.db.get(BankAccount, bank_account_id)
        if not account:
            raise NotFoundException("BankAccount", bank_account_id)
        return account

    async def _ensure_unique_account_number(self, value: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(BankAccount.id).where(BankAccount.account_number == value)
        if exclude_id:
            query = query.where(BankAccount.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first():
            raise ConflictException(
                "duplicateAccountNumber",
                resource_type="BankAccount",
                code=ErrorCode.DUPLICATE_ENTRY,
                details={"account_number": value},
            )

    async def create_bank_account(self, data: BankAccountCreate) -> BankAccount:
        account_number = data.account_number.strip()
        await self._ensure_unique_account_number(account_number)

        name = data.name.strip()
        handler = await self._create_handler(
            BANK_DETAIL_START_CODE,
            DEFAULT_BANK_DETAIL_START_CODE,
            f"{name} - {account_number}",
        )
        account = BankAccount(
            **data.model_dump(exclude={"name", "account_number"}),
            name=name,
            account_number=account_number,
            handler_detail_id=handler.id,
        )
        self.db.add(account)
        await self.db.flush()
        logger.info(f"Bank account {account_number} created with handler {handler.code}")
        return account

    async def update_bank_account(self, bank_account_id: uuid.UUID, data: BankAccountUpdate) -> BankAccount:
        account = await self.get_bank_account(bank_account_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("account_number"):
            changes["account_number"] = changes["account_number"].strip()
            await self._ensure_unique_account_number(changes["account_number"], exclude_id=account.id)
        if changes.get("name"):
            changes["name"] = changes["name"].strip()
        for name, value in changes.items():
            if value is None and name in ("name", "account_number", "is_active", "starting_amount"):
                continue
            setattr(account, name, value)
        await self._sync_handler(
            account.handler_detail_id,
            title=f"{account.name} - {account.account_number}",
            is_active=account.is_active,
        )
        await self.db.flush()
        return account

    async def delete_bank_account(self, bank_account_id: uuid.UUID) -> None:
        account = await self.get_bank_account(bank_account_id)
        handler_id = account.handler_detail_id
        await self.db.delete(account)
        await self.db.flush()
        await self._delete_handler(handler_id)
        await self.db.flush()
        logger.info(f"Bank account {account.account_number} ({bank_account_id}) deleted")

    # =========================================================================
    # CARD READERS
    # =========================================================================

    async def list_card_readers(self, bank_account_id: Optional[uuid.UUID] = None) -> List[CardReader]:
        query = select(CardReader)
        if bank_account_id:
            await self.get_bank_account(bank_account_id)
            query = query.where(CardReader.bank_account_id == bank_account_id)
        result = await self.db.execute(query.order_by(CardReader.psp_provider, CardReader.terminal_id))
        return list(result.scalars().all())

    async def get_card_reader(self, card_reader_id: uuid.UUID) -> CardReader:
        reader = await self.db.get(CardReader, card_reader_id)
        if not reader:
            raise NotFoundException("CardReader", card_reader_id)
        return reader

    async def create_card_reader(self, data: CardReaderCreate) -> CardReader:
        await self.get_bank_account(data.bank_account_id)
        psp = data.psp_provider.strip()
        terminal = data.terminal_id.strip()
        handler = await self._create_handler(
            CARD_READER_DETAIL_START_CODE,
            DEFAULT_CARD_READER_DETAIL_START_CODE,
            f"{psp} - {terminal}",
        )
        reader = CardReader(
            **data.model_dump(exclude={"psp_provider", "terminal_id"}),
            psp_provider=psp,
            terminal_id=terminal,
            handler_detail_id=handler.id,
        )
        self.db.add(reader)
        await self.db.flush()
        logger.info(f"Card reader {psp}/{terminal} created with handler {handler.code}")
        return reader

    async def update_card_reader(self, card_reader_id: uuid.UUID, data: CardReaderUpdate) -> CardReader:
        reader = await self.get_card_reader(card_reader_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("bank_account_id"):
            await self.get_bank_account(changes["bank_account_id"])
        for name, value in changes.items():
            if value is None and name in ("bank_account_id", "psp_provider", "terminal_id", "is_active"):
                continue
            setattr(reader, name, value.strip() if isinstance(value, str) else value)
        await self._sync_handler(
            reader.handler_detail_id,
            title=f"{reader.psp_provider} - {reader.terminal_id}",
            is_active=reader.is_active,
        )
        await self.db.flush()
        return reader

    async def delete_card_reader(self, card_reader_id: uuid.UUID) -> None:
        reader = await self.get_card_reader(card_reader_id)
        handler_id = reader.handler_detail_id
        await self.db.delete(reader)
        await self.db.flush()
        await self._delete_handler(handler_id)
        await self.db.flush()
        logger.info(f"Card reader {reader.terminal_id} ({card_reader_id}) deleted")

    # =========================================================================
    # CHECKBOOKS
    # =========================================================================

    async def list_checkbooks(self, bank_account_id: uuid.UUID) -> List[Checkbook]:
        await self.get_bank_account(bank_account_id)
        result = await self.db.execute(
            select(Checkbook)
            .where(Checkbook.bank_account_id == bank_account_id)
            .order_by(Checkbook.start_number)
        )
        return list(result.scalars().all())

    async def get_checkbook(self, checkbook_id: uuid.UUID) -> Checkbook:
        checkbook = await self.db.get(Checkbook, checkbook_id)
        if not checkbook:
            raise NotFoundException("Checkbook", checkbook_id)
        return checkbook

    async def create_checkbook(self, data: CheckbookCreate) -> Checkbook:
        await self.get_bank_account(data.bank_account_id)
        checkbook = Checkbook(**data.model_dump(), status=CheckbookStatus.ACTIVE)
        self.db.add(checkbook)
        await self.db.flush()
        logger.info(
            f"Checkbook {checkbook.start_number}-{checkbook.end_number} created for account {data.bank_account_id}"
        )
        return checkbook

    async def update_checkbook(self, checkbook_id: uuid.UUID, data: CheckbookUpdate) -> Checkbook:
        checkbook = await self.get_checkbook(checkbook_id)
        changes = data.model_dump(exclude_unset=True)
        for name, value in changes.items():
            if value is None and name in ("page_count", "status"):
                continue
            setattr(checkbook, name, value)
        await self.db.flush()
        await self._refresh_exhausted(checkbook)
        return checkbook

    async def delete_checkbook(self, checkbook_id: uuid.UUID) -> None:
        checkbook = await self.get_checkbook(checkbook_id)
        result = await self.db.execute(select(Check.id).where(Check.checkbook_id == checkbook.id).limit(1))
        if result.first() is not None:
            raise ConflictException("checkbookHasChecks", code=ErrorCode.CANNOT_DELETE, resource_type="Checkbook")
        await self.db.delete(checkbook)
        await self.db.flush()
        logger.info(f"Checkbook {checkbook_id} deleted")

    async def list_checkbook_checks(self, checkbook_id: uuid.UUID) -> List[Check]:
        await self.get_checkbook(checkbook_id)
        result = await self.db.execute(
            select(Check)
            .where(Check.checkbook_id == checkbook_id)
            .order_by(numeric_value(Check.number))
        )
        return list(result.scalars().all())

    async def _last_issued_number(self, checkbook_id: uuid.UUID) -> Optional[int]:
        result = await self.db.execute(
            select(func.max(numeric_value(Check.number))).where(
                Check.checkbook_id == checkbook_id,
                Check.type == CheckType.OUTGOING,
                is_numeric_text(Check.number),
            )
        )
        return result.scalar()

    async def last_issued_number(self, checkbook_id: uuid.UUID) -> Dict[str, object]:
        """Last serial issued, the next free suggestion (None when exhausted) and the range."""
        checkbook = await self.get_checkbook(checkbook_id)
        last = await self._last_issued_number(checkbook.id)
        suggestion: Optional[int] = checkbook.start_number if last is None else last + 1
        if suggestion > checkbook.end_number:
            suggestion = None
        return {
            "last_issued_number": last,
            "next_suggestion": suggestion,
            "range": {"start": checkbook.start_number, "end": checkbook.end_number},
        }

    async def _refresh_exhausted(self, checkbook: Checkbook) -> None:
        """Flip an active checkbook to exhausted once its last serial is issued."""
        if checkbook.status != CheckbookStatus.ACTIVE:
            return
        result = await self.db.execute(
            select(Check.id).where(
                Check.checkbook_id == checkbook.id,
                Check.type == CheckType.OUTGOING,
                Check.number == str(checkbook.end_number),
            ).limit(1)
        )
        if result.first() is not None:
            checkbook.status = CheckbookStatus.EXHAUSTED
            await self.db.flush()
            logger.info(f"Checkbook {checkbook.id} exhausted at serial {checkbook.end_number}")

    # =========================================================================
    # CHECKS
    # =========================================================================

    async def list_checks(
        self,
        check_type: Optional[CheckType] = CheckType.INCOMING,
        status: Optional[CheckStatus] = None,
        cashbox_id: Optional[uuid.UUID] = None,
        available: bool = False,
        exclude_receipt_id: Optional[uuid.UUID] = None,
        exclude_payment_id: Optional[uuid.UUID] = None,
    ) -> List[Check]:
        """
        List checks, newest issue date first.

        ``available`` drops checks already used on a receipt or payment
        item, except items of the excluded documents (the one being edited).
        """
        query = select(Check)
        if check_type:
            query = query.where(Check.type == check_type)
            if check_type == CheckType.INCOMING:
                query = query.where(Check.checkbook_id.is_(None))
        if status:
            query = query.where(Check.status == status)
        if cashbox_id:
            query = query.where(Check.cashbox_id == cashbox_id)
        if available:
            receipt_use = (
                select(ReceiptItem.id)
                .join(InstrumentLink, InstrumentLink.id == ReceiptItem.related_instrument_id)
                .where(InstrumentLink.check_id == Check.id)
            )
            if exclude_receipt_id:
                receipt_use = receipt_use.where(ReceiptItem.receipt_id != exclude_receipt_id)
            payment_use = (
                select(PaymentItem.id)
                .join(InstrumentLink, InstrumentLink.id == PaymentItem.related_instrument_id)
                .where(InstrumentLink.check_id == Check.id)
            )
            if exclude_payment_id:
                payment_use = payment_use.where(PaymentItem.payment_id != exclude_payment_id)
            query = query.where(~exists(receipt_use), ~exists(payment_use))
        result = await self.db.execute(
            query.order_by(Check.issue_date.desc(), Check.created_at.desc()).limit(100)
        )
        return list(result.scalars().all())

    async def get_check(self, check_id: uuid.UUID) -> Check:
        check = await self.db.get(Check, check_id)
        if not check:
            raise NotFoundException("Check", check_id)
        return check

    async def _ensure_active_beneficiary(self, detail_id: Optional[uuid.UUID]) -> None:
        if not detail_id:
            return
        detail = await self.db.get(Detail, detail_id)
        if detail is None:
            raise NotFoundException("Detail", detail_id)
        if not detail.is_active:
            raise ValidationException("beneficiaryInactive", field="beneficiary_detail_id")

    async def _validate_serial(
        self,
        checkbook: Checkbook,
        raw_number: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> str:
        """Normalised serial inside the checkbook range and not yet issued."""
        number = normalize_digits(raw_number)
        if not number.isdigit():
            raise ValidationException("invalidCheckNumber", field="number")
        serial = int(number)
        if not checkbook.start_number <= serial <= checkbook.end_number:
            raise ValidationException(
                "checkNumberOutOfRange",
                field="number",
                details={"start": checkbook.start_number, "end": checkbook.end_number},
            )
        number = str(serial)
        query = select(Check.id).where(
            Check.checkbook_id == checkbook.id,
            Check.type == CheckType.OUTGOING,
            Check.number == number,
        )
        if exclude_id:
            query = query.where(Check.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first():
            raise ConflictException(
                "duplicateCheckNumber",
                resource_type="Check",
                code=ErrorCode.DUPLICATE_ENTRY,
                details={"number": number},
            )
        return number

    async def create_outgoing_check(self, data: OutgoingCheckCreate) -> Check:
        checkbook = await self.get_checkbook(data.checkbook_id)
        if checkbook.status != CheckbookStatus.ACTIVE:
            raise ConflictException("checkbookInactive", resource_type="Checkbook")
        number = await self._validate_serial(checkbook, data.number)
        await self._ensure_active_beneficiary(data.beneficiary_detail_id)

        check = Check(
            type=CheckType.OUTGOING,
            checkbook_id=checkbook.id,
            number=number,
            amount=data.amount,
            issue_date=data.issue_date,
            due_date=data.due_date,
            beneficiary=data.beneficiary,
            beneficiary_detail_id=data.beneficiary_detail_id,
            notes=data.notes,
            status=CheckStatus.ISSUED,
        )
        self.db.add(check)
        await self.db.flush()
        await self._refresh_exhausted(checkbook)
        logger.info(f"Outgoing check {number} issued from checkbook {checkbook.id}")
        return check

    async def create_incoming_check(self, data: IncomingCheckCreate) -> Check:
        if data.amount is None or data.amount <= Decimal("0"):
            raise ValidationException("invalidCheckAmount", field="amount")
        await self._ensure_active_beneficiary(data.beneficiary_detail_id)

        check = Check(
            type=CheckType.INCOMING,
            number=normalize_digits(data.number),
            amount=data.amount,
            bank_name=data.bank_name,
            issuer=data.issuer,
            beneficiary=data.beneficiary,
            beneficiary_detail_id=data.beneficiary_detail_id,
            issue_date=data.issue_date,
            due_date=data.due_date,
            notes=data.notes,
            status=CheckStatus.CREATED,
        )
        self.db.add(check)
        await self.db.flush()
        logger.info(f"Incoming check {check.number} registered ({check.amount})")
        return check

    async def update_check(self, check_id: uuid.UUID, data: CheckUpdate) -> Check:
        check = await self.get_check(check_id)
        changes = data.model_dump(exclude_unset=True)

        checkbook = None
        if check.checkbook_id:
            checkbook = await self.get_checkbook(check.checkbook_id)
        if changes.get("number"):
            if checkbook is not None and check.type == CheckType.OUTGOING:
                changes["number"] = await self._validate_serial(checkbook, changes["number"], exclude_id=check.id)
            else:
                changes["number"] = normalize_digits(changes["number"])
        if "beneficiary_detail_id" in changes:
            await self._ensure_active_beneficiary(changes["beneficiary_detail_id"])

        for name, value in changes.items():
            if value is None and name in ("number", "amount", "issue_date"):
                continue
            setattr(check, name, value)
        await self.db.flush()
        if checkbook is not None:
            await self._refresh_exhausted(checkbook)
        return check

    async def delete_check(self, check_id: uuid.UUID) -> None:
        """Only issued outgoing checks and created incoming checks can be deleted."""
        check = await self.get_check(check_id)
        deletable = (
            (check.type == CheckType.OUTGOING and check.status == CheckStatus.ISSUED)
            or (check.type == CheckType.INCOMING and check.status == CheckStatus.CREATED)
        )
        if not deletable:
            raise ValidationException("cannotDeleteCheck", details={"status": check.status.value})

        result = await self.db.execute(select(InstrumentLink).where(InstrumentLink.check_id == check.id))
        link = result.scalar_one_or_none()
        if link is not None:
            await self.db.delete(link)
        await self.db.delete(check)
        await self.db.flush()
        logger.info(f"Check {check.number} ({check_id}) deleted")
