"""
Ledgerline - Routers Package

FastAPI route handlers.

Routers:
- codes: Chart of accounts (group / general / specific)
- details: Four-digit sub-ledger details
- detail_levels: Detail classification tree
- fiscal_years: Fiscal periods
- journals: Journal documents and lifecycle actions
- treasury: Cashboxes, bank accounts, card readers, checkbooks, checks
- treasury_documents: Receipts and payments
- settings: Settings store
"""

from app.routers import (
    codes,
    details,
    detail_levels,
    fiscal_years,
    journals,
    treasury,
    treasury_documents,
    settings,
)

__all__ = [
    "codes",
    "details",
    "detail_levels",
    "fiscal_years",
    "journals",
    "treasury",
    "treasury_documents",
    "settings",
]
