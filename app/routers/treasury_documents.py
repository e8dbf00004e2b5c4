"""
Ledgerline - Treasury Documents Router

Receipts and payments, and sending them to the ledger.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, get_lang
from app.models.treasury import TreasuryDocumentStatus
from app.schemas.common import DataResponse, ItemResponse, ListResponse
from app.schemas.treasury import (
    PaymentCreate,
    PaymentResponse,
    PaymentUpdate,
    ReceiptCreate,
    ReceiptResponse,
    ReceiptUpdate,
)
from app.services.treasury_document_service import TreasuryDocumentService
from app.utils.i18n import t


router = APIRouter()


# ===========================================
# RECEIPTS
# ===========================================

@router.get("/receipts", response_model=ListResponse[ReceiptResponse], summary="List receipts")
async def list_receipts(
    fiscal_year_id: Optional[UUID] = Query(None),
    document_status: Optional[TreasuryDocumentStatus] = Query(None, alias="status"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    receipts = await TreasuryDocumentService(db, lang).list_receipts(fiscal_year_id, document_status)
    return ListResponse[ReceiptResponse](
        message=t("ok", lang),
        items=[ReceiptResponse.model_validate(r) for r in receipts],
    )


@router.get(
    "/receipts/by-journal/{journal_id}",
    response_model=ItemResponse[ReceiptResponse],
    summary="Receipt sent to a journal",
)
async def get_receipt_by_journal(
    journal_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    receipt = await TreasuryDocumentService(db, lang).get_receipt_by_journal(journal_id)
    return ItemResponse[ReceiptResponse](message=t("ok", lang), item=ReceiptResponse.model_validate(receipt))


@router.get("/receipts/{receipt_id}", response_model=ItemResponse[ReceiptResponse], summary="Get receipt")
async def get_receipt(
    receipt_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    receipt = await TreasuryDocumentService(db, lang).get_receipt(receipt_id)
    return ItemResponse[ReceiptResponse](message=t("ok", lang), item=ReceiptResponse.model_validate(receipt))


@router.post(
    "/receipts",
    response_model=ItemResponse[ReceiptResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create receipt",
)
async def create_receipt(
    request: ReceiptCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    receipt = await TreasuryDocumentService(db, lang).create_receipt(request)
    await db.commit()
    await db.refresh(receipt)
    return ItemResponse[ReceiptResponse](message=t("created", lang), item=ReceiptResponse.model_validate(receipt))


@router.patch("/receipts/{receipt_id}", response_model=ItemResponse[ReceiptResponse], summary="Update receipt")
async def update_receipt(
    receipt_id: UUID,
    request: ReceiptUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    receipt = await TreasuryDocumentService(db, lang).update_receipt(receipt_id, request)
    await db.commit()
    await db.refresh(receipt)
    return ItemResponse[ReceiptResponse](message=t("updated", lang), item=ReceiptResponse.model_validate(receipt))


@router.delete(
    "/receipts/{receipt_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete receipt",
)
async def delete_receipt(
    receipt_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryDocumentService(db, lang).delete_receipt(receipt_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": receipt_id})


@router.post(
    "/receipts/{receipt_id}/post",
    response_model=ItemResponse[ReceiptResponse],
    summary="Send receipt to the ledger",
    description="Creates a temporary journal and marks the receipt sent.",
)
async def post_receipt(
    receipt_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    receipt, _ = await TreasuryDocumentService(db, lang).post_receipt(receipt_id)
    await db.commit()
    await db.refresh(receipt)
    return ItemResponse[ReceiptResponse](message=t("sent", lang), item=ReceiptResponse.model_validate(receipt))


# ===========================================
# PAYMENTS
# ===========================================

@router.get("/payments", response_model=ListResponse[PaymentResponse], summary="List payments")
async def list_payments(
    fiscal_year_id: Optional[UUID] = Query(None),
    document_status: Optional[TreasuryDocumentStatus] = Query(None, alias="status"),
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    payments = await TreasuryDocumentService(db, lang).list_payments(fiscal_year_id, document_status)
    return ListResponse[PaymentResponse](
        message=t("ok", lang),
        items=[PaymentResponse.model_validate(p) for p in payments],
    )


@router.get(
    "/payments/by-journal/{journal_id}",
    response_model=ItemResponse[PaymentResponse],
    summary="Payment sent to a journal",
)
async def get_payment_by_journal(
    journal_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    payment = await TreasuryDocumentService(db, lang).get_payment_by_journal(journal_id)
    return ItemResponse[PaymentResponse](message=t("ok", lang), item=PaymentResponse.model_validate(payment))


@router.get("/payments/{payment_id}", response_model=ItemResponse[PaymentResponse], summary="Get payment")
async def get_payment(
    payment_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    payment = await TreasuryDocumentService(db, lang).get_payment(payment_id)
    return ItemResponse[PaymentResponse](message=t("ok", lang), item=PaymentResponse.model_validate(payment))


@router.post(
    "/payments",
    response_model=ItemResponse[PaymentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create payment",
)
async def create_payment(
    request: PaymentCreate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    payment = await TreasuryDocumentService(db, lang).create_payment(request)
    await db.commit()
    await db.refresh(payment)
    return ItemResponse[PaymentResponse](message=t("created", lang), item=PaymentResponse.model_validate(payment))


@router.patch("/payments/{payment_id}", response_model=ItemResponse[PaymentResponse], summary="Update payment")
async def update_payment(
    payment_id: UUID,
    request: PaymentUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    payment = await TreasuryDocumentService(db, lang).update_payment(payment_id, request)
    await db.commit()
    await db.refresh(payment)
    return ItemResponse[PaymentResponse](message=t("updated", lang), item=PaymentResponse.model_validate(payment))


@router.delete(
    "/payments/{payment_id}",
    response_model=DataResponse[Dict[str, UUID]],
    summary="Delete payment",
)
async def delete_payment(
    payment_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    await TreasuryDocumentService(db, lang).delete_payment(payment_id)
    await db.commit()
    return DataResponse[Dict[str, UUID]](message=t("deleted", lang), data={"id": payment_id})


@router.post(
    "/payments/{payment_id}/post",
    response_model=ItemResponse[PaymentResponse],
    summary="Send payment to the ledger",
)
async def post_payment(
    payment_id: UUID,
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    lang: str = Depends(get_lang),
):
    payment, _ = await TreasuryDocumentService(db, lang).post_payment(payment_id)
    await db.commit()
    await db.refresh(payment)
    return ItemResponse[PaymentResponse](message=t("sent", lang), item=PaymentResponse.model_validate(payment))
