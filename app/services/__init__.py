"""
Ledgerline - Services Package

Business logic services.
"""

from app.services.sequence_service import SequenceService
from app.services.code_mapping_service import CodeMappingService
from app.services.setting_service import SettingService
from app.services.taxonomy_service import TaxonomyService
from app.services.fiscal_year_service import FiscalYearService
from app.services.journal_service import JournalFilter, JournalLine, JournalService
from app.services.instrument_link_service import InstrumentLinkService
from app.services.treasury_service import TreasuryService
from app.services.treasury_document_service import TreasuryDocumentService

__all__ = [
    # Numbering and configuration
    "SequenceService",
    "CodeMappingService",
    "SettingService",
    # Ledger
    "TaxonomyService",
    "FiscalYearService",
    "JournalFilter",
    "JournalLine",
    "JournalService",
    # Treasury
    "InstrumentLinkService",
    "TreasuryService",
    "TreasuryDocumentService",
]
