"""
Ledgerline - Message Catalogue

Localized user-facing messages. Services raise exceptions carrying a
message key; routers and exception handlers turn keys into text for the
language picked from ``?lang=`` or the Accept-Language header.
"""

from typing import Any, Dict, Optional

from starlette.requests import Request

from app.config import settings


SUPPORTED_LANGUAGES = ("en", "fa")


MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        # Generic
        "ok": "OK",
        "created": "Created successfully",
        "updated": "Updated successfully",
        "deleted": "Deleted successfully",
        "generic": "An unexpected error occurred. Please try again later.",
        "invalidInput": "The request payload is invalid",
        "unauthorized": "Authentication required",
        "forbidden": "You are not allowed to perform this action",
        "notFound": "{resource} not found",
        "duplicateEntry": "A record with this value already exists",
        "duplicateRefNo": "A journal with this reference number already exists in the fiscal year",
        "missingCodeMapping": "Account code mapping {name} is not configured",
        "databaseError": "A database error occurred",
        # Taxonomy
        "invalidKind": "Invalid code kind",
        "invalidParent": "Parent code kind does not match the code level",
        "codeRequired": "Code is required",
        "titleRequired": "Title is required",
        "groupCodeWidth": "Group codes must be exactly two digits",
        "duplicateCode": "Code {code} is already in use",
        "hasChildren": "Cannot delete a node that has children",
        "codeInUse": "Cannot delete a code referenced by journal items",
        "invalidWidth": "Detail codes must be exactly four digits",
        "linkMustBeLeaf": "Details can only be linked to leaf detail levels",
        "systemManagedCannotEdit": "System-managed details cannot be edited",
        "systemManagedCannotDelete": "System-managed details cannot be deleted",
        "linkedExists": "Cannot delete while links exist",
        "specificRequired": "Only specific codes can be attached to a detail level",
        "cycle": "A detail level cannot be moved under its own descendant",
        "noFreeCode": "No free code is left in the range",
        # Fiscal years
        "invalidRange": "Start date must be on or before end date",
        "overlappingRange": "The date range overlaps another fiscal year",
        "cannotEditDatesWithDocuments": "Dates cannot change while documents reference the fiscal year",
        "alreadyOpen": "The fiscal year is already open",
        "opened": "Fiscal year opened",
        "closedOk": "Fiscal year closed",
        "mustBeClosed": "Close the fiscal year before opening the next one",
        "nextAlreadyExists": "A fiscal year already starts on {start_date}",
        "hasDocuments": "Cannot delete a fiscal year that has documents",
        "noOpenFiscalYear": "No fiscal year is open",
        "nextSuffix": "(Next)",
        # Journals
        "cannotModifyPosted": "Posted documents cannot be modified",
        "cannotDeletePosted": "Posted journals cannot be deleted",
        "cannotReverseDraft": "Only permanent journals can be reversed",
        "unbalanced": "Debits and credits do not balance",
        "invalidItemReference": "Journal item references an unknown code or detail",
        "invalidAmount": "Amount must be at least 0.01",
        "posted": "Journal posted",
        "reversed": "Journal reversed",
        "bulkPosted": "{affected} journals posted",
        "codesReordered": "{affected} journal codes rewritten",
        # Treasury
        "missingItems": "At least one item is required",
        "invalidTotal": "Item amounts do not add up to the total amount",
        "cashboxRequired": "A cashbox is required for cash and check items",
        "alreadySent": "The document has already been sent to the ledger",
        "sent": "Document sent to the ledger",
        "handlerMissing": "{resource} has no handler detail",
        "duplicateAccountNumber": "Account number {account_number} is already registered",
        "checkbookInactive": "The checkbook is not active",
        "invalidCheckNumber": "Check number must contain digits only",
        "checkNumberOutOfRange": "Check number is outside the checkbook range {start}-{end}",
        "duplicateCheckNumber": "Check number {number} is already issued from this checkbook",
        "checkbookHasChecks": "Cannot delete a checkbook that has checks",
        "cannotDeleteCheck": "Only issued outgoing checks and new incoming checks can be deleted",
        "invalidCheckAmount": "Check amount must be greater than zero",
        "beneficiaryInactive": "The beneficiary detail is not active",
        "instrumentMismatch": "Instrument type {type} is not valid for this item",
        "checkTypeMismatch": "Check {number} cannot be used for this item",
        "receiptCash": "Receipt Cash",
        "receiptTransfer": "Deposit via bank transfer {reference}",
        "receiptCard": "Receive from card reader to number {terminal_id} {reference}",
        "receiptCheck": "Check: {bank_name} {number} {due_date}",
        "paymentCash": "Payment Cash",
        "paymentTransfer": "Withdraw via bank transfer {reference}",
        "paymentCheck": "Check: {bank_name} {number} {due_date}",
        "paymentCheckin": "Spend received check: {bank_name} {number} {due_date}",
    },
    "fa": {
        "ok": "انجام شد",
        "created": "با موفقیت ایجاد شد",
        "updated": "با موفقیت ویرایش شد",
        "deleted": "با موفقیت حذف شد",
        "generic": "خطای غیرمنتظره رخ داد. لطفا دوباره تلاش کنید.",
        "invalidInput": "اطلاعات ارسال شده نامعتبر است",
        "unauthorized": "احراز هویت لازم است",
        "forbidden": "اجازه انجام این عملیات را ندارید",
        "notFound": "{resource} یافت نشد",
        "duplicateEntry": "رکوردی با این مقدار از قبل وجود دارد",
        "duplicateRefNo": "سندی با این شماره عطف در این سال مالی وجود دارد",
        "missingCodeMapping": "نگاشت کد حساب {name} تنظیم نشده است",
        "databaseError": "خطای پایگاه داده رخ داد",
        "invalidKind": "نوع کد نامعتبر است",
        "invalidParent": "نوع کد والد با سطح کد همخوانی ندارد",
        "codeRequired": "کد الزامی است",
        "titleRequired": "عنوان الزامی است",
        "groupCodeWidth": "کد گروه باید دقیقا دو رقم باشد",
        "duplicateCode": "کد {code} قبلا استفاده شده است",
        "hasChildren": "گره دارای زیرمجموعه قابل حذف نیست",
        "codeInUse": "کدی که در اقلام سند استفاده شده قابل حذف نیست",
        "invalidWidth": "کد تفصیلی باید دقیقا چهار رقم باشد",
        "linkMustBeLeaf": "تفصیلی فقط به سطوح برگ متصل می شود",
        "systemManagedCannotEdit": "تفصیلی سیستمی قابل ویرایش نیست",
        "systemManagedCannotDelete": "تفصیلی سیستمی قابل حذف نیست",
        "linkedExists": "تا زمانی که ارتباط وجود دارد حذف ممکن نیست",
        "specificRequired": "فقط کدهای معین به سطح تفصیلی متصل می شوند",
        "cycle": "سطح تفصیلی نمی تواند زیر فرزند خود قرار گیرد",
        "noFreeCode": "کد آزادی در این بازه باقی نمانده است",
        "invalidRange": "تاریخ شروع باید قبل یا برابر تاریخ پایان باشد",
        "overlappingRange": "بازه تاریخ با سال مالی دیگری همپوشانی دارد",
        "cannotEditDatesWithDocuments": "سال مالی دارای سند است و تاریخ آن قابل تغییر نیست",
        "alreadyOpen": "سال مالی از قبل باز است",
        "opened": "سال مالی باز شد",
        "closedOk": "سال مالی بسته شد",
        "mustBeClosed": "ابتدا سال مالی جاری را ببندید",
        "nextAlreadyExists": "سال مالی دیگری از {start_date} شروع می شود",
        "hasDocuments": "سال مالی دارای سند قابل حذف نیست",
        "noOpenFiscalYear": "هیچ سال مالی بازی وجود ندارد",
        "nextSuffix": "(بعدی)",
        "cannotModifyPosted": "سند قطعی قابل ویرایش نیست",
        "cannotDeletePosted": "سند قطعی قابل حذف نیست",
        "cannotReverseDraft": "فقط سند قطعی قابل برگشت است",
        "unbalanced": "جمع بدهکار و بستانکار برابر نیست",
        "invalidItemReference": "قلم سند به کد یا تفصیلی نامعتبر اشاره دارد",
        "invalidAmount": "مبلغ باید حداقل 0.01 باشد",
        "posted": "سند قطعی شد",
        "reversed": "سند برگشت خورد",
        "bulkPosted": "{affected} سند قطعی شد",
        "codesReordered": "کد {affected} سند بازنویسی شد",
        "missingItems": "حداقل یک قلم لازم است",
        "invalidTotal": "جمع اقلام با مبلغ کل برابر نیست",
        "cashboxRequired": "برای اقلام نقد و چک انتخاب صندوق الزامی است",
        "alreadySent": "این سند قبلا به دفتر ارسال شده است",
        "sent": "سند به دفتر ارسال شد",
        "handlerMissing": "{resource} تفصیلی متناظر ندارد",
        "duplicateAccountNumber": "شماره حساب {account_number} قبلا ثبت شده است",
        "checkbookInactive": "دسته چک فعال نیست",
        "invalidCheckNumber": "شماره چک فقط باید شامل ارقام باشد",
        "checkNumberOutOfRange": "شماره چک خارج از بازه دسته چک {start}-{end} است",
        "duplicateCheckNumber": "چک شماره {number} قبلا از این دسته چک صادر شده است",
        "checkbookHasChecks": "دسته چک دارای چک قابل حذف نیست",
        "cannotDeleteCheck": "فقط چک پرداختی صادر شده یا چک دریافتی جدید قابل حذف است",
        "invalidCheckAmount": "مبلغ چک باید بیشتر از صفر باشد",
        "beneficiaryInactive": "تفصیلی ذینفع فعال نیست",
        "instrumentMismatch": "نوع ابزار {type} برای این قلم معتبر نیست",
        "checkTypeMismatch": "چک {number} برای این قلم قابل استفاده نیست",
        "receiptCash": "دریافت وجه نقد",
        "receiptTransfer": "واریز از طریق حواله بانکی {reference}",
        "receiptCard": "دریافت از کارتخوان به شماره {terminal_id} {reference}",
        "receiptCheck": "چک: {bank_name} {number} {due_date}",
        "paymentCash": "پرداخت وجه نقد",
        "paymentTransfer": "برداشت از طریق حواله بانکی {reference}",
        "paymentCheck": "چک: {bank_name} {number} {due_date}",
        "paymentCheckin": "خرج چک دریافتی: {bank_name} {number} {due_date}",
    },
}


class _Params(dict):
    """Leaves unknown placeholders in place instead of raising."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def normalize_language(value: Optional[str]) -> str:
    """Map 'fa-IR', 'EN', ... onto a supported language code."""
    if value:
        primary = value.split(",")[0].split(";")[0].strip().lower()
        primary = primary.split("-")[0]
        if primary in SUPPORTED_LANGUAGES:
            return primary
    return settings.default_language if settings.default_language in SUPPORTED_LANGUAGES else "en"


def language_from_request(request: Request) -> str:
    """Query string wins over Accept-Language."""
    return normalize_language(
        request.query_params.get("lang") or request.headers.get("accept-language")
    )


def t(key: str, lang: str = "en", **params: Any) -> str:
    """Translate a message key, falling back to English and then the key itself."""
    catalogue = MESSAGES.get(lang) or MESSAGES["en"]
    template = catalogue.get(key) or MESSAGES["en"].get(key)
    if template is None:
        return key
    if not params:
        return template
    return template.format_map(_Params({k: "" if v is None else v for k, v in params.items()}))
