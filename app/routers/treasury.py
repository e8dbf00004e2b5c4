"""
Ledgerline - Treasury Router

Cashboxes, bank accounts, card readers, checkbooks and checks.
Receipts and payments live in treasury_documents.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.models.treasury import CheckStatus, CheckType
from app.schemas.common import DataResponse, ItemResponse, ListResponse
from app.schemas.taxonomy import SuggestedCode
from app.schemas.treasury import (
    BankAccountCreate,
    BankAccountResponse,
    BankAccountUpdate,
    CardReaderCreate,
    CardReaderResponse,
    CardReaderUpdate,
    CashboxCreate,
    CashboxResponse,
    CashboxUpdate,
    CheckbookCreate,
    CheckbookResponse,
    CheckbookUpdate,
    CheckResponse,
    CheckUpdate,
    IncomingCheckCreate,
    LastIssuedNumber,
    OutgoingCheckCreate,
)
from app.services.treasury_service import TreasuryService
from app.utils.i18n import t


router = APIRouter()


# ===========================================
# CASHBOXES
# ===========================================

@router.get("/cashboxes", response_model=ListResponse[CashboxResponse], summary="List cashboxes")
async def list_cashboxes(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    cashboxes = await TreasuryService(db).list_cashboxes()
    return ListResponse[CashboxResponse](
        message=t("ok", lang),
        items=[CashboxResponse.model_validate(c) for c in cashboxes],
    )


@router.get(
    "/cashboxes/next-code",
    response_model=DataResponse[SuggestedCode],
    summary="Suggest next cashbox code",
)
async def next_cashbox_code(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    code = await TreasuryService(db).next_cashbox_code()
    return DataResponse[SuggestedCode](message=t("ok", lang), data=SuggestedCode(code=code))


@router.get("/cashboxes/{cashbox_id}", response_model=ItemResponse[CashboxResponse], summary="Get cashbox")
async def get_cashbox(
    cashbox_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    cashbox = await TreasuryService(db).get_cashbox(cashbox_id)
    return ItemResponse[CashboxResponse](message=t("ok", lang), item=CashboxResponse.model_validate(cashbox))


@router.post(
    "/cashboxes",
    response_model=ItemResponse[CashboxResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create cashbox",
    description="Also creates (or takes over) the handler detail with the same code.",
)
async def create_cashbox(
    request: CashboxCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    cashbox = await TreasuryService(db).create_cashbox(request)
    await db.commit()
    await db.refresh(cashbox)
    return ItemResponse[CashboxResponse](message=t("created", lang), item=CashboxResponse.model_validate(cashbox))


@router.patch("/cashboxes/{cashbox_id}", response_model=ItemResponse[CashboxResponse], summary="Update cashbox")
async def update_cashbox(
    cashbox_id: UUID,
    request: CashboxUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    cashbox = await TreasuryService(db).update_cashbox(cashbox_id, request)
    await db.commit()
    await db.refresh(cashbox)
    return ItemResponse[CashboxResponse](message=t("updated", lang), item=CashboxResponse.model_validate(cashbox))


@router.delete("/cashboxes/{cashbox_id}", response_model=DataResponse[Dict[str, UUID]], summary="Delete cashbox")
async def delete_cashbox(
    cashbox_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryService(db).delete_cashbox(cashbox_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": cashbox_id})


# ===========================================
# BANK ACCOUNTS
# ===========================================

@router.get("/bank-accounts", response_model=ListResponse[BankAccountResponse], summary="List bank accounts")
async def list_bank_accounts(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    accounts = await TreasuryService(db).list_bank_accounts()
    return ListResponse[BankAccountResponse](
        message=t("ok", lang),
        items=[BankAccountResponse.model_validate(a) for a in accounts],
    )


@router.get(
    "/bank-accounts/{bank_account_id}",
    response_model=ItemResponse[BankAccountResponse],
    summary="Get bank account",
)
async def get_bank_account(
    bank_account_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    account = await TreasuryService(db).get_bank_account(bank_account_id)
    return ItemResponse[BankAccountResponse](message=t("ok", lang), item=BankAccountResponse.model_validate(account))


@router.post(
    "/bank-accounts",
    response_model=ItemResponse[BankAccountResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create bank account",
)
async def create_bank_account(
    request: BankAccountCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    account = await TreasuryService(db).create_bank_account(request)
    await db.commit()
    await db.refresh(account)
    return ItemResponse[BankAccountResponse](message=t("created", lang), item=BankAccountResponse.model_validate(account))


@router.patch(
    "/bank-accounts/{bank_account_id}",
    response_model=ItemResponse[BankAccountResponse],
    summary="Update bank account",
)
async def update_bank_account(
    bank_account_id: UUID,
    request: BankAccountUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    account = await TreasuryService(db).update_bank_account(bank_account_id, request)
    await db.commit()
    await db.refresh(account)
    return ItemResponse[BankAccountResponse](message=t("updated", lang), item=BankAccountResponse.model_validate(account))


@router.delete(
    "/bank-accounts/{bank_account_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete bank account",
)
async def delete_bank_account(
    bank_account_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryService(db).delete_bank_account(bank_account_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": bank_account_id})


@router.get(
    "/bank-accounts/{bank_account_id}/checkbooks",
    response_model=ListResponse[CheckbookResponse],
    summary="List checkbooks of a bank account",
)
async def list_checkbooks(
    bank_account_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    checkbooks = await TreasuryService(db).list_checkbooks(bank_account_id)
    return ListResponse[CheckbookResponse](
        message=t("ok", lang),
        items=[CheckbookResponse.model_validate(c) for c in checkbooks],
    )


@router.post(
    "/bank-accounts/{bank_account_id}/checkbooks",
    response_model=ItemResponse[CheckbookResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create checkbook",
)
async def create_checkbook(
    bank_account_id: UUID,
    request: CheckbookCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    data = request.model_copy(update={"bank_account_id": bank_account_id})
    checkbook = await TreasuryService(db).create_checkbook(data)
    await db.commit()
    await db.refresh(checkbook)
    return ItemResponse[CheckbookResponse](message=t("created", lang), item=CheckbookResponse.model_validate(checkbook))


@router.get(
    "/bank-accounts/{bank_account_id}/card-readers",
    response_model=ListResponse[CardReaderResponse],
    summary="List card readers of a bank account",
)
async def list_card_readers(
    bank_account_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    readers = await TreasuryService(db).list_card_readers(bank_account_id)
    return ListResponse[CardReaderResponse](
        message=t("ok", lang),
        items=[CardReaderResponse.model_validate(r) for r in readers],
    )


@router.post(
    "/bank-accounts/{bank_account_id}/card-readers",
    response_model=ItemResponse[CardReaderResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create card reader",
)
async def create_card_reader(
    bank_account_id: UUID,
    request: CardReaderCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    data = request.model_copy(update={"bank_account_id": bank_account_id})
    reader = await TreasuryService(db).create_card_reader(data)
    await db.commit()
    await db.refresh(reader)
    return ItemResponse[CardReaderResponse](message=t("created", lang), item=CardReaderResponse.model_validate(reader))


# ===========================================
# CARD READERS
# ===========================================

@router.get(
    "/card-readers/{card_reader_id}",
    response_model=ItemResponse[CardReaderResponse],
    summary="Get card reader",
)
async def get_card_reader(
    card_reader_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    reader = await TreasuryService(db).get_card_reader(card_reader_id)
    return ItemResponse[CardReaderResponse](message=t("ok", lang), item=CardReaderResponse.model_validate(reader))


@router.patch(
    "/card-readers/{card_reader_id}",
    response_model=ItemResponse[CardReaderResponse],
    summary="Update card reader",
)
async def update_card_reader(
    card_reader_id: UUID,
    request: CardReaderUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    reader = await TreasuryService(db).update_card_reader(card_reader_id, request)
    await db.commit()
    await db.refresh(reader)
    return ItemResponse[CardReaderResponse](message=t("updated", lang), item=CardReaderResponse.model_validate(reader))


@router.delete(
    "/card-readers/{card_reader_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete card reader",
)
async def delete_card_reader(
    card_reader_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryService(db).delete_card_reader(card_reader_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": card_reader_id})


# ===========================================
# CHECKBOOKS
# ===========================================

@router.get("/checkbooks/{checkbook_id}", response_model=ItemResponse[CheckbookResponse], summary="Get checkbook")
async def get_checkbook(
    checkbook_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    checkbook = await TreasuryService(db).get_checkbook(checkbook_id)
    return ItemResponse[CheckbookResponse](message=t("ok", lang), item=CheckbookResponse.model_validate(checkbook))


@router.patch(
    "/checkbooks/{checkbook_id}",
    response_model=ItemResponse[CheckbookResponse],
    summary="Update checkbook",
)
async def update_checkbook(
    checkbook_id: UUID,
    request: CheckbookUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    checkbook = await TreasuryService(db).update_checkbook(checkbook_id, request)
    await db.commit()
    await db.refresh(checkbook)
    return ItemResponse[CheckbookResponse](message=t("updated", lang), item=CheckbookResponse.model_validate(checkbook))


@router.delete(
    "/checkbooks/{checkbook_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete checkbook",
    description="Rejected while the checkbook has checks.",
)
async def delete_checkbook(
    checkbook_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryService(db).delete_checkbook(checkbook_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": checkbook_id})


@router.get(
    "/checkbooks/{checkbook_id}/checks",
    response_model=ListResponse[CheckResponse],
    summary="List checks issued from a checkbook",
)
async def list_checkbook_checks(
    checkbook_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    checks = await TreasuryService(db).list_checkbook_checks(checkbook_id)
    return ListResponse[CheckResponse](message=t("ok", lang), items=[CheckResponse.model_validate(c) for c in checks])


@router.post(
    "/checkbooks/{checkbook_id}/checks",
    response_model=ItemResponse[CheckResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Issue outgoing check",
    description="Issuing the last serial marks the checkbook exhausted.",
)
async def create_outgoing_check(
    checkbook_id: UUID,
    request: OutgoingCheckCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    data = request.model_copy(update={"checkbook_id": checkbook_id})
    check = await TreasuryService(db).create_outgoing_check(data)
    await db.commit()
    await db.refresh(check)
    return ItemResponse[CheckResponse](message=t("created", lang), item=CheckResponse.model_validate(check))


@router.get(
    "/checkbooks/{checkbook_id}/last-issued-number",
    response_model=DataResponse[LastIssuedNumber],
    summary="Last issued serial and next suggestion",
)
async def last_issued_number(
    checkbook_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    data = await TreasuryService(db).last_issued_number(checkbook_id)
    return DataResponse[LastIssuedNumber](message=t("ok", lang), data=LastIssuedNumber(**data))


# ===========================================
# CHECKS
# ===========================================

@router.get(
    "/checks",
    response_model=ListResponse[CheckResponse],
    summary="List checks",
    description=(
        "Incoming checks by default. ``available=true`` hides checks already "
        "used on a receipt or payment, except those of the excluded document."
    ),
)
async def list_checks(
    check_type: CheckType = Query(CheckType.INCOMING, alias="type"),
    check_status: Optional[CheckStatus] = Query(None, alias="status"),
    cashbox_id: Optional[UUID] = Query(None),
    available: bool = Query(False),
    exclude_receipt_id: Optional[UUID] = Query(None),
    exclude_payment_id: Optional[UUID] = Query(None),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    checks = await TreasuryService(db).list_checks(
        check_type=check_type,
        status=check_status,
        cashbox_id=cashbox_id,
        available=available,
        exclude_receipt_id=exclude_receipt_id,
        exclude_payment_id=exclude_payment_id,
    )
    return ListResponse[CheckResponse](message=t("ok", lang), items=[CheckResponse.model_validate(c) for c in checks])


@router.post(
    "/checks",
    response_model=ItemResponse[CheckResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register incoming check",
)
async def create_incoming_check(
    request: IncomingCheckCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    check = await TreasuryService(db).create_incoming_check(request)
    await db.commit()
    await db.refresh(check)
    return ItemResponse[CheckResponse](message=t("created", lang), item=CheckResponse.model_validate(check))


@router.get("/checks/{check_id}", response_model=ItemResponse[CheckResponse], summary="Get check")
async def get_check(
    check_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    check = await TreasuryService(db).get_check(check_id)
    return ItemResponse[CheckResponse](message=t("ok", lang), item=CheckResponse.model_validate(check))


@router.patch("/checks/{check_id}", response_model=ItemResponse[CheckResponse], summary="Update check")
async def update_check(
    check_id: UUID,
    request: CheckUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    check = await TreasuryService(db).update_check(check_id, request)
    await db.commit()
    await db.refresh(check)
    return ItemResponse[CheckResponse](message=t("updated", lang), item=CheckResponse.model_validate(check))


@router.delete(
    "/checks/{check_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete check",
    description="Only issued outgoing checks and created incoming checks.",
)
async def delete_check(
    check_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryService(db).delete_check(check_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": check_id})
