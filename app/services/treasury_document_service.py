"""
Ledgerline - Treasury Document Service

Receipts and payments, and the bridge that turns them into journals.

Document lifecycle: temporary -> sent (journal created, status temporary)
-> permanent (journal posted). Only temporary documents can be edited or
deleted. Saving a document also moves the checks it uses:

    receipt:  incoming check   created   -> incashbox
    payment:  received check   incashbox -> spent    (checkin)
              outgoing check   issued    -> spent    (check)

and removing a check from a document (edit or delete) moves it back.
"""

import logging
import uuid
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.journal import Journal, JournalStatus
from app.models.treasury import (
    BankAccount,
    CardReader,
    Cashbox,
    Check,
    CheckStatus,
    CheckType,
    InstrumentLink,
    Payment,
    PaymentInstrument,
    PaymentItem,
    Receipt,
    ReceiptInstrument,
    ReceiptItem,
    TreasuryDocumentStatus,
)
from app.schemas.treasury import (
    PaymentCreate,
    PaymentItemIn,
    PaymentUpdate,
    ReceiptCreate,
    ReceiptItemIn,
    ReceiptUpdate,
)
from app.services import code_mapping_service as mapping
from app.services.code_mapping_service import CodeMappingService
from app.services.fiscal_year_service import FiscalYearService
from app.services.instrument_link_service import InstrumentLinkService, instrument_ref
from app.services.journal_service import JournalLine, JournalService
from app.services.sequence_service import SequenceService
from app.utils.error_handling import (
    ConflictException,
    ErrorCode,
    NotFoundException,
    ValidationException,
)
from app.utils.i18n import t

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = Decimal("0.0001")
JOURNAL_PROVIDER = "treasury"

RECEIPT_CASHBOX_INSTRUMENTS = {ReceiptInstrument.CASH, ReceiptInstrument.CHECK}
PAYMENT_CASHBOX_INSTRUMENTS = {PaymentInstrument.CASH, PaymentInstrument.CHECKIN}


def _iso(value) -> str:
    return value.isoformat() if value else ""


class TreasuryDocumentService:
    """Service for receipts, payments and their posting to the ledger."""

    def __init__(self, db: AsyncSession, lang: str = "en"):
        self.db = db
        self.lang = lang
        self.sequences = SequenceService(db)
        self.links = InstrumentLinkService(db)
        self.mappings = CodeMappingService(db)
        self.journals = JournalService(db)

    # =========================================================================
    # SHARED VALIDATION
    # =========================================================================

    @staticmethod
    def _validate_items(
        amounts: Sequence[Decimal],
        instrument_types: Sequence[str],
        total_amount: Decimal,
        cashbox_id: Optional[uuid.UUID],
        cashbox_instruments: Set[str],
    ) -> None:
        if not amounts:
            raise ValidationException("missingItems", field="items")
        items_total = sum((Decimal(a) for a in amounts), Decimal("0"))
        if abs(items_total - Decimal(total_amount)) > TOTAL_TOLERANCE:
            raise ValidationException(
                "invalidTotal",
                field="total_amount",
                details={"items_total": str(items_total), "total_amount": str(total_amount)},
            )
        if not cashbox_id and any(kind in cashbox_instruments for kind in instrument_types):
            raise ValidationException("cashboxRequired", field="cashbox_id")

    @staticmethod
    def _ensure_editable(document) -> None:
        if document.status != TreasuryDocumentStatus.TEMPORARY:
            raise ConflictException(
                "cannotModifyPosted",
                code=ErrorCode.CANNOT_MODIFY,
                resource_type=type(document).__name__,
            )

    async def _ensure_cashbox(self, cashbox_id: Optional[uuid.UUID]) -> None:
        if cashbox_id and not await self.db.get(Cashbox, cashbox_id):
            raise NotFoundException("Cashbox", cashbox_id)

    async def _get_check(self, check_id: uuid.UUID) -> Check:
        check = await self.db.get(Check, check_id)
        if check is None:
            raise NotFoundException("Check", check_id)
        return check

    @staticmethod
    def _check_ids(items) -> Set[uuid.UUID]:
        return {
            item.instrument.check_id
            for item in items
            if item.instrument is not None and item.instrument.check_id
        }

    async def _build_items(self, item_model, items: Sequence, instrument_enum, check_rules: Dict[str, CheckType]):
        """Resolve instrument references to link rows and build item rows."""
        built = []
        for position, item in enumerate(items):
            expected_type = check_rules.get(item.instrument.type)
            if expected_type is not None:
                check = await self._get_check(item.instrument.check_id)
                if check.type != expected_type:
                    raise ValidationException(
                        "checkTypeMismatch", field="items", details={"number": check.number},
                    )
            link = await self.links.get_or_create(instrument_ref(item.instrument))
            built.append(item_model(
                instrument_type=instrument_enum(item.instrument.type),
                amount=item.amount,
                reference=item.reference,
                instrument=link,
                position=position,
            ))
        return built

    async def _fiscal_year_for(self, document) -> uuid.UUID:
        if document.fiscal_year_id:
            return document.fiscal_year_id
        current = await FiscalYearService(self.db).get_current()
        return current.id

    # =========================================================================
    # RECEIPTS
    # =========================================================================

    async def list_receipts(
        self,
        fiscal_year_id: Optional[uuid.UUID] = None,
        status: Optional[TreasuryDocumentStatus] = None,
    ) -> List[Receipt]:
        query = select(Receipt)
        if fiscal_year_id:
            query = query.where(Receipt.fiscal_year_id == fiscal_year_id)
        if status:
            query = query.where(Receipt.status == status)
        result = await self.db.execute(query.order_by(Receipt.date.desc(), Receipt.created_at.desc()))
        return list(result.scalars().all())

    async def get_receipt(self, receipt_id: uuid.UUID) -> Receipt:
        receipt = await self.db.get(Receipt, receipt_id)
        if not receipt:
            raise NotFoundException("Receipt", receipt_id)
        return receipt

    async def get_receipt_by_journal(self, journal_id: uuid.UUID) -> Receipt:
        result = await self.db.execute(select(Receipt).where(Receipt.journal_id == journal_id))
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise NotFoundException("Receipt", journal_id)
        return receipt

    def _validate_receipt_items(self, items: List[ReceiptItemIn], total_amount, cashbox_id) -> None:
        self._validate_items(
            [item.amount for item in items],
            [item.instrument.type for item in items],
            total_amount,
            cashbox_id,
            {kind.value for kind in RECEIPT_CASHBOX_INSTRUMENTS},
        )

    async def _build_receipt_items(self, items: List[ReceiptItemIn]) -> List[ReceiptItem]:
        return await self._build_items(
            ReceiptItem, items, ReceiptInstrument, {"check": CheckType.INCOMING},
        )

    async def _land_receipt_checks(self, receipt: Receipt) -> None:
        """Received checks on the receipt go into its cashbox."""
        for check_id in self._check_ids(receipt.items):
            check = await self._get_check(check_id)
            if check.checkbook_id is not None:
                continue
            if check.status in (CheckStatus.CREATED, CheckStatus.INCASHBOX):
                check.status = CheckStatus.INCASHBOX
                check.cashbox_id = receipt.cashbox_id

    async def _release_receipt_checks(self, check_ids: Set[uuid.UUID], receipt_id: uuid.UUID) -> None:
        """Checks no longer on any receipt leave the cashbox."""
        for check_id in check_ids:
            result = await self.db.execute(
                select(ReceiptItem.id)
                .join(InstrumentLink, InstrumentLink.id == ReceiptItem.related_instrument_id)
                .where(InstrumentLink.check_id == check_id, ReceiptItem.receipt_id != receipt_id)
                .limit(1)
            )
            if result.first() is not None:
                continue
            check = await self.db.get(Check, check_id)
            if check is not None and check.status == CheckStatus.INCASHBOX:
                check.status = CheckStatus.CREATED
                check.cashbox_id = None

    async def create_receipt(self, data: ReceiptCreate) -> Receipt:
        self._validate_receipt_items(data.items, data.total_amount, data.cashbox_id)
        await self._ensure_cashbox(data.cashbox_id)

        receipt = Receipt(
            **data.model_dump(exclude={"items", "number"}),
            number=(data.number or "").strip() or await self.sequences.next_receipt_number(data.fiscal_year_id),
            status=TreasuryDocumentStatus.TEMPORARY,
            items=await self._build_receipt_items(data.items),
        )
        self.db.add(receipt)
        await self.db.flush()
        await self._land_receipt_checks(receipt)
        await self.db.flush()
        logger.info(f"Receipt {receipt.number} created ({receipt.total_amount})")
        return receipt

    async def update_receipt(self, receipt_id: uuid.UUID, data: ReceiptUpdate) -> Receipt:
        receipt = await self.get_receipt(receipt_id)
        self._ensure_editable(receipt)

        changes = data.model_dump(exclude_unset=True, exclude={"items"})
        total_amount = changes.get("total_amount") or receipt.total_amount
        cashbox_id = changes["cashbox_id"] if "cashbox_id" in changes else receipt.cashbox_id
        previous_checks = self._check_ids(receipt.items)

        if data.items is not None:
            self._validate_receipt_items(data.items, total_amount, cashbox_id)
        else:
            self._validate_items(
                [item.amount for item in receipt.items],
                [item.instrument_type.value for item in receipt.items],
                total_amount,
                cashbox_id,
                {kind.value for kind in RECEIPT_CASHBOX_INSTRUMENTS},
            )
        await self._ensure_cashbox(cashbox_id)

        for name, value in changes.items():
            if name == "number":
                value = (value or "").strip() or receipt.number
            if value is None and name in ("date", "total_amount"):
                continue
            setattr(receipt, name, value)
        if data.items is not None:
            receipt.items = await self._build_receipt_items(data.items)
        await self.db.flush()

        await self._land_receipt_checks(receipt)
        await self._release_receipt_checks(previous_checks - self._check_ids(receipt.items), receipt.id)
        await self.db.flush()
        logger.info(f"Receipt {receipt.number} updated")
        return receipt

    async def delete_receipt(self, receipt_id: uuid.UUID) -> None:
        receipt = await self.get_receipt(receipt_id)
        self._ensure_editable(receipt)
        check_ids = self._check_ids(receipt.items)
        await self.db.delete(receipt)
        await self.db.flush()
        await self._release_receipt_checks(check_ids, receipt_id)
        await self.db.flush()
        logger.info(f"Receipt {receipt.number} ({receipt_id}) deleted")

    async def post_receipt(self, receipt_id: uuid.UUID) -> Tuple[Receipt, Journal]:
        """
        Send a receipt to the ledger as a temporary journal.

        One debit line per item on the instrument's account code, one
        credit line for the total on the counterparty code.
        """
        receipt = await self.get_receipt(receipt_id)
        if receipt.journal_id or receipt.status != TreasuryDocumentStatus.TEMPORARY:
            raise ConflictException("alreadySent", code=ErrorCode.ALREADY_PROCESSED, resource_type="Receipt")
        self._validate_items(
            [item.amount for item in receipt.items],
            [item.instrument_type.value for item in receipt.items],
            receipt.total_amount,
            receipt.cashbox_id,
            {kind.value for kind in RECEIPT_CASHBOX_INSTRUMENTS},
        )

        lines: List[JournalLine] = []
        for item in receipt.items:
            code_id, detail_id, description = await self._receipt_line(receipt, item)
            lines.append(JournalLine(code_id=code_id, detail_id=detail_id, debit=item.amount, description=description))

        counter_code_id = receipt.special_code_id or await self.mappings.resolve_code_id(
            mapping.CODE_TREASURY_COUNTERPARTY_RECEIPT
        )
        lines.append(JournalLine(
            code_id=counter_code_id,
            detail_id=receipt.detail_id,
            credit=receipt.total_amount,
            description=receipt.description,
        ))

        journal = await self.journals.create_journal_record(
            fiscal_year_id=await self._fiscal_year_for(receipt),
            journal_date=receipt.date,
            lines=lines,
            status=JournalStatus.TEMPORARY,
            description=receipt.description,
            journal_type="receipt",
            provider=JOURNAL_PROVIDER,
        )
        receipt.status = TreasuryDocumentStatus.SENT
        receipt.journal_id = journal.id
        await self._land_receipt_checks(receipt)
        await self.db.flush()
        logger.info(f"Receipt {receipt.number} sent to journal {journal.ref_no} ({journal.id})")
        return receipt, journal

    async def _receipt_line(self, receipt: Receipt, item: ReceiptItem) -> Tuple[uuid.UUID, Optional[uuid.UUID], str]:
        reference = item.reference or ""
        link = item.instrument
        if item.instrument_type == ReceiptInstrument.CASH:
            cashbox = await self.db.get(Cashbox, receipt.cashbox_id)
            code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_CASH_RECEIPT)
            return code_id, cashbox.handler_detail_id if cashbox else None, t("receiptCash", self.lang)
        if item.instrument_type == ReceiptInstrument.CARD:
            reader = await self.db.get(CardReader, link.card_reader_id)
            code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_CARD_RECEIPT)
            description = t("receiptCard", self.lang, terminal_id=reader.terminal_id, reference=reference)
            return code_id, reader.handler_detail_id, description.strip()
        if item.instrument_type == ReceiptInstrument.TRANSFER:
            account = await self.db.get(BankAccount, link.bank_account_id)
            code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_TRANSFER_RECEIPT)
            description = t("receiptTransfer", self.lang, reference=reference)
            return code_id, account.handler_detail_id, description.strip()
        check = await self._get_check(link.check_id)
        code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_CHECK_RECEIPT)
        description = t(
            "receiptCheck", self.lang,
            bank_name=check.bank_name or "", number=check.number, due_date=_iso(check.due_date),
        )
        return code_id, receipt.detail_id, " ".join(description.split())

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def list_payments(
        self,
        fiscal_year_id: Optional[uuid.UUID] = None,
        status: Optional[TreasuryDocumentStatus] = None,
    ) -> List[Payment]:
        query = select(Payment)
        if fiscal_year_id:
            query = query.where(Payment.fiscal_year_id == fiscal_year_id)
        if status:
            query = query.where(Payment.status == status)
        result = await self.db.execute(query.order_by(Payment.date.desc(), Payment.created_at.desc()))
        return list(result.scalars().all())

    async def get_payment(self, payment_id: uuid.UUID) -> Payment:
        payment = await self.db.get(Payment, payment_id)
        if not payment:
            raise NotFoundException("Payment", payment_id)
        return payment

    async def get_payment_by_journal(self, journal_id: uuid.UUID) -> Payment:
        result = await self.db.execute(select(Payment).where(Payment.journal_id == journal_id))
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundException("Payment", journal_id)
        return payment

    def _validate_payment_items(self, items: List[PaymentItemIn], total_amount, cashbox_id) -> None:
        self._validate_items(
            [item.amount for item in items],
            [item.instrument.type for item in items],
            total_amount,
            cashbox_id,
            {kind.value for kind in PAYMENT_CASHBOX_INSTRUMENTS},
        )

    async def _build_payment_items(self, items: List[PaymentItemIn]) -> List[PaymentItem]:
        return await self._build_items(
            PaymentItem,
            items,
            PaymentInstrument,
            {"check": CheckType.OUTGOING, "checkin": CheckType.INCOMING},
        )

    async def _spend_payment_checks(self, payment: Payment) -> None:
        for check_id in self._check_ids(payment.items):
            check = await self._get_check(check_id)
            if check.type == CheckType.INCOMING and check.status == CheckStatus.INCASHBOX:
                check.status = CheckStatus.SPENT
            elif check.type == CheckType.OUTGOING and check.status == CheckStatus.ISSUED:
                check.status = CheckStatus.SPENT

    async def _restore_payment_checks(self, check_ids: Set[uuid.UUID], payment_id: uuid.UUID) -> None:
        """Checks no longer on any payment return to their pre-payment state."""
        for check_id in check_ids:
            result = await self.db.execute(
                select(PaymentItem.id)
                .join(InstrumentLink, InstrumentLink.id == PaymentItem.related_instrument_id)
                .where(InstrumentLink.check_id == check_id, PaymentItem.payment_id != payment_id)
                .limit(1)
            )
            if result.first() is not None:
                continue
            check = await self.db.get(Check, check_id)
            if check is None or check.status != CheckStatus.SPENT:
                continue
            check.status = CheckStatus.ISSUED if check.type == CheckType.OUTGOING else CheckStatus.INCASHBOX

    async def create_payment(self, data: PaymentCreate) -> Payment:
        self._validate_payment_items(data.items, data.total_amount, data.cashbox_id)
        await self._ensure_cashbox(data.cashbox_id)

        payment = Payment(
            **data.model_dump(exclude={"items", "number"}),
            number=(data.number or "").strip() or await self.sequences.next_payment_number(data.fiscal_year_id),
            status=TreasuryDocumentStatus.TEMPORARY,
            items=await self._build_payment_items(data.items),
        )
        self.db.add(payment)
        await self.db.flush()
        await self._spend_payment_checks(payment)
        await self.db.flush()
        logger.info(f"Payment {payment.number} created ({payment.total_amount})")
        return payment

    async def update_payment(self, payment_id: uuid.UUID, data: PaymentUpdate) -> Payment:
        payment = await self.get_payment(payment_id)
        self._ensure_editable(payment)

        changes = data.model_dump(exclude_unset=True, exclude={"items"})
        total_amount = changes.get("total_amount") or payment.total_amount
        cashbox_id = changes["cashbox_id"] if "cashbox_id" in changes else payment.cashbox_id
        previous_checks = self._check_ids(payment.items)

        if data.items is not None:
            self._validate_payment_items(data.items, total_amount, cashbox_id)
        else:
            self._validate_items(
                [item.amount for item in payment.items],
                [item.instrument_type.value for item in payment.items],
                total_amount,
                cashbox_id,
                {kind.value for kind in PAYMENT_CASHBOX_INSTRUMENTS},
            )
        await self._ensure_cashbox(cashbox_id)

        for name, value in changes.items():
            if name == "number":
                value = (value or "").strip() or payment.number
            if value is None and name in ("date", "total_amount"):
                continue
            setattr(payment, name, value)
        if data.items is not None:
            payment.items = await self._build_payment_items(data.items)
        await self.db.flush()

        await self._restore_payment_checks(previous_checks - self._check_ids(payment.items), payment.id)
        await self._spend_payment_checks(payment)
        await self.db.flush()
        logger.info(f"Payment {payment.number} updated")
        return payment

    async def delete_payment(self, payment_id: uuid.UUID) -> None:
        payment = await self.get_payment(payment_id)
        self._ensure_editable(payment)
        check_ids = self._check_ids(payment.items)
        await self.db.delete(payment)
        await self.db.flush()
        await self._restore_payment_checks(check_ids, payment_id)
        await self.db.flush()
        logger.info(f"Payment {payment.number} ({payment_id}) deleted")

    async def post_payment(self, payment_id: uuid.UUID) -> Tuple[Payment, Journal]:
        """Send a payment to the ledger: credit per item, one debit for the total."""
        payment = await self.get_payment(payment_id)
        if payment.journal_id or payment.status != TreasuryDocumentStatus.TEMPORARY:
            raise ConflictException("alreadySent", code=ErrorCode.ALREADY_PROCESSED, resource_type="Payment")
        self._validate_items(
            [item.amount for item in payment.items],
            [item.instrument_type.value for item in payment.items],
            payment.total_amount,
            payment.cashbox_id,
            {kind.value for kind in PAYMENT_CASHBOX_INSTRUMENTS},
        )

        lines: List[JournalLine] = []
        for item in payment.items:
            code_id, detail_id, description = await self._payment_line(payment, item)
            lines.append(JournalLine(code_id=code_id, detail_id=detail_id, credit=item.amount, description=description))

        counter_code_id = payment.special_code_id or await self.mappings.resolve_code_id(
            mapping.CODE_TREASURY_COUNTERPARTY_PAYMENT
        )
        lines.insert(0, JournalLine(
            code_id=counter_code_id,
            detail_id=payment.detail_id,
            debit=payment.total_amount,
            description=payment.description,
        ))

        journal = await self.journals.create_journal_record(
            fiscal_year_id=await self._fiscal_year_for(payment),
            journal_date=payment.date,
            lines=lines,
            status=JournalStatus.TEMPORARY,
            description=payment.description,
            journal_type="payment",
            provider=JOURNAL_PROVIDER,
        )
        payment.status = TreasuryDocumentStatus.SENT
        payment.journal_id = journal.id
        await self._spend_payment_checks(payment)
        await self.db.flush()
        logger.info(f"Payment {payment.number} sent to journal {journal.ref_no} ({journal.id})")
        return payment, journal

    async def _payment_line(self, payment: Payment, item: PaymentItem) -> Tuple[uuid.UUID, Optional[uuid.UUID], str]:
        reference = item.reference or ""
        link = item.instrument
        if item.instrument_type == PaymentInstrument.CASH:
            cashbox = await self.db.get(Cashbox, payment.cashbox_id)
            code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_CASH_PAYMENT)
            return code_id, cashbox.handler_detail_id if cashbox else None, t("paymentCash", self.lang)
        if item.instrument_type == PaymentInstrument.TRANSFER:
            account = await self.db.get(BankAccount, link.bank_account_id)
            code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_TRANSFER_PAYMENT)
            description = t("paymentTransfer", self.lang, reference=reference)
            return code_id, account.handler_detail_id, description.strip()

        check = await self._get_check(link.check_id)
        params = dict(bank_name=check.bank_name or "", number=check.number, due_date=_iso(check.due_date))
        if item.instrument_type == PaymentInstrument.CHECK:
            code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_CHECK_PAYMENT)
            description = t("paymentCheck", self.lang, **params)
            return code_id, payment.detail_id, " ".join(description.split())
        code_id = await self.mappings.resolve_code_id(mapping.CODE_TREASURY_CHECK_RECEIPT)
        description = t("paymentCheckin", self.lang, **params)
        return code_id, check.beneficiary_detail_id, " ".join(description.split())
