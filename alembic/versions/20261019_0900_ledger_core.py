"""Ledger core schema

Revision ID: 20261019_0900
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the chart of accounts, details and detail levels, fiscal years,
journals with their sequence counters, settings, and the treasury
resources and documents.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261019_0900'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum labels are the member names, as SQLAlchemy stores them.
ENUMS = {
    'codekind': ('GROUP', 'GENERAL', 'SPECIFIC'),
    'codenature': ('DEBIT', 'CREDIT'),
    'detailkind': ('USER_MANAGED', 'SYSTEM_MANAGED'),
    'invoicestatus': ('DRAFT', 'TEMPORARY', 'PERMANENT'),
    'journalstatus': ('DRAFT', 'TEMPORARY', 'PERMANENT'),
    'settingtype': ('SPECIAL', 'DIGITS', 'STRING'),
    'checktype': ('INCOMING', 'OUTGOING'),
    'checkstatus': ('CREATED', 'ISSUED', 'INCASHBOX', 'SPENT'),
    'checkbookstatus': ('ACTIVE', 'EXHAUSTED'),
    'linktype': ('CARD', 'TRANSFER', 'CHECK'),
    'receiptinstrument': ('CASH', 'CARD', 'TRANSFER', 'CHECK'),
    'paymentinstrument': ('CASH', 'TRANSFER', 'CHECK', 'CHECKIN'),
    'treasurydocumentstatus': ('TEMPORARY', 'SENT', 'PERMANENT'),
}


def _enum(name):
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _id():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                     server_default=sa.text('gen_random_uuid()'))


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _fk(column, target, ondelete, nullable=True, **kw):
    return sa.Column(column, postgresql.UUID(as_uuid=True),
                     sa.ForeignKey(target, ondelete=ondelete), nullable=nullable, **kw)


def _money(column, nullable=False, default=True):
    kw = {'server_default': sa.text('0')} if default else {}
    return sa.Column(column, sa.Numeric(18, 2), nullable=nullable, **kw)


def upgrade() -> None:
    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)

    # ===========================================
    # TAXONOMY
    # ===========================================
    op.create_table(
        'codes',
        _id(),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('kind', _enum('codekind'), nullable=False),
        _fk('parent_id', 'codes.id', 'RESTRICT'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('nature', _enum('codenature'), nullable=True),
        sa.Column('can_have_details', sa.Boolean, nullable=False, server_default=sa.text('true')),
        *_timestamps(),
    )
    op.create_index('ix_codes_parent_id', 'codes', ['parent_id'])
    op.create_index('ix_codes_kind', 'codes', ['kind'])

    op.create_table(
        'details',
        _id(),
        sa.Column('code', sa.String(4), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('kind', _enum('detailkind'), nullable=False, server_default='USER_MANAGED'),
        *_timestamps(),
    )

    op.create_table(
        'detail_levels',
        _id(),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        _fk('parent_id', 'detail_levels.id', 'RESTRICT'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        *_timestamps(),
    )
    op.create_index('ix_detail_levels_parent_id', 'detail_levels', ['parent_id'])

    op.create_table(
        'detail_level_specific_codes',
        _fk('detail_level_id', 'detail_levels.id', 'CASCADE', nullable=False, primary_key=True),
        _fk('code_id', 'codes.id', 'RESTRICT', nullable=False, primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'details_detail_levels',
        _fk('detail_id', 'details.id', 'CASCADE', nullable=False, primary_key=True),
        _fk('detail_level_id', 'detail_levels.id', 'CASCADE', nullable=False, primary_key=True),
        sa.Column('is_primary', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('position', sa.Integer, nullable=True),
    )
    op.create_index('ix_details_detail_levels_level', 'details_detail_levels', ['detail_level_id'])

    # ===========================================
    # FISCAL YEARS, INVOICES, SETTINGS
    # ===========================================
    op.create_table(
        'fiscal_years',
        _id(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('is_closed', sa.Boolean, nullable=False, server_default=sa.text('true')),
        *_timestamps(),
        sa.CheckConstraint('start_date <= end_date', name='ck_fiscal_years_date_range'),
    )
    op.create_index('ix_fiscal_years_start_date', 'fiscal_years', ['start_date'])

    op.create_table(
        'invoices',
        _id(),
        sa.Column('invoice_no', sa.String(50), nullable=True, unique=True),
        _fk('fiscal_year_id', 'fiscal_years.id', 'RESTRICT'),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('status', _enum('invoicestatus'), nullable=False, server_default='DRAFT'),
        _money('total'),
        *_timestamps(),
    )
    op.create_index('ix_invoices_fiscal_year_id', 'invoices', ['fiscal_year_id'])

    op.create_table(
        'settings',
        _id(),
        sa.Column('code', sa.String(100), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('type', _enum('settingtype'), nullable=False, server_default='STRING'),
        sa.Column('value', sa.JSON, nullable=True),
        sa.Column('special_id', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )

    # ===========================================
    # JOURNALS
    # ===========================================
    op.create_table(
        'journals',
        _id(),
        _fk('fiscal_year_id', 'fiscal_years.id', 'RESTRICT', nullable=False),
        sa.Column('ref_no', sa.String(50), nullable=True),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('serial_no', sa.Integer, nullable=True, unique=True),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('type', sa.String(50), nullable=True),
        sa.Column('provider', sa.String(100), nullable=True),
        sa.Column('status', _enum('journalstatus'), nullable=False, server_default='DRAFT'),
        *_timestamps(),
        sa.UniqueConstraint('fiscal_year_id', 'ref_no', name='uq_journals_fiscal_year_ref_no'),
    )
    op.create_index('ix_journals_fiscal_year_id', 'journals', ['fiscal_year_id'])
    op.create_index('ix_journals_fiscal_year_code', 'journals', ['fiscal_year_id', 'code'])
    op.create_index('ix_journals_fiscal_year_date', 'journals', ['fiscal_year_id', 'date'])
    op.create_index('ix_journals_status', 'journals', ['status'])

    op.create_table(
        'journal_items',
        _id(),
        _fk('journal_id', 'journals.id', 'CASCADE', nullable=False),
        _fk('code_id', 'codes.id', 'RESTRICT', nullable=False),
        _fk('detail_id', 'details.id', 'RESTRICT'),
        sa.Column('party_id', postgresql.UUID(as_uuid=True), nullable=True),
        _money('debit'),
        _money('credit'),
        sa.Column('description', sa.String(200), nullable=True),
        sa.Column('position', sa.Integer, nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sa.CheckConstraint('debit >= 0', name='ck_journal_items_debit_non_negative'),
        sa.CheckConstraint('credit >= 0', name='ck_journal_items_credit_non_negative'),
    )
    op.create_index('ix_journal_items_journal_id', 'journal_items', ['journal_id'])
    op.create_index('ix_journal_items_code_id', 'journal_items', ['code_id'])
    op.create_index('ix_journal_items_detail_id', 'journal_items', ['detail_id'])

    op.create_table(
        'sequence_counters',
        _id(),
        sa.Column('scope', sa.String(120), nullable=False, unique=True),
        sa.Column('last_value', sa.BigInteger, nullable=False, server_default=sa.text('0')),
        *_timestamps(),
    )

    # ===========================================
    # TREASURY RESOURCES
    # ===========================================
    op.create_table(
        'cashboxes',
        _id(),
        sa.Column('code', sa.String(4), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        _fk('handler_detail_id', 'details.id', 'SET NULL'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        _money('starting_amount'),
        sa.Column('starting_date', sa.Date, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'bank_accounts',
        _id(),
        sa.Column('account_number', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('bank_name', sa.String(200), nullable=True),
        sa.Column('kind_of_account', sa.String(100), nullable=True),
        sa.Column('card_number', sa.String(30), nullable=True),
        sa.Column('iban', sa.String(40), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        _money('starting_amount'),
        sa.Column('starting_date', sa.Date, nullable=True),
        _fk('handler_detail_id', 'details.id', 'SET NULL'),
        *_timestamps(),
    )

    op.create_table(
        'card_readers',
        _id(),
        _fk('bank_account_id', 'bank_accounts.id', 'RESTRICT', nullable=False),
        sa.Column('psp_provider', sa.String(100), nullable=False),
        sa.Column('terminal_id', sa.String(50), nullable=False),
        sa.Column('merchant_id', sa.String(50), nullable=True),
        sa.Column('device_serial', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('description', sa.Text, nullable=True),
        _fk('handler_detail_id', 'details.id', 'SET NULL'),
        *_timestamps(),
    )
    op.create_index('ix_card_readers_bank_account_id', 'card_readers', ['bank_account_id'])

    op.create_table(
        'checkbooks',
        _id(),
        _fk('bank_account_id', 'bank_accounts.id', 'RESTRICT', nullable=False),
        sa.Column('series', sa.String(50), nullable=True),
        sa.Column('start_number', sa.Integer, nullable=False),
        sa.Column('page_count', sa.Integer, nullable=False),
        sa.Column('issue_date', sa.Date, nullable=True),
        sa.Column('received_date', sa.Date, nullable=True),
        sa.Column('status', _enum('checkbookstatus'), nullable=False, server_default='ACTIVE'),
        sa.Column('description', sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint('page_count > 0', name='ck_checkbooks_page_count_positive'),
    )
    op.create_index('ix_checkbooks_bank_account_id', 'checkbooks', ['bank_account_id'])

    op.create_table(
        'checks',
        _id(),
        sa.Column('type', _enum('checktype'), nullable=False),
        _fk('checkbook_id', 'checkbooks.id', 'RESTRICT'),
        sa.Column('number', sa.String(50), nullable=False),
        sa.Column('bank_name', sa.String(200), nullable=True),
        sa.Column('issuer', sa.String(200), nullable=True),
        sa.Column('beneficiary', sa.String(200), nullable=True),
        _fk('beneficiary_detail_id', 'details.id', 'SET NULL'),
        _money('amount', default=False),
        sa.Column('status', _enum('checkstatus'), nullable=False),
        sa.Column('issue_date', sa.Date, nullable=False),
        sa.Column('due_date', sa.Date, nullable=True),
        _fk('cashbox_id', 'cashboxes.id', 'SET NULL'),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('checkbook_id', 'type', 'number', name='uq_checks_checkbook_type_number'),
        sa.CheckConstraint('amount > 0', name='ck_checks_amount_positive'),
    )
    op.create_index('ix_checks_checkbook_id', 'checks', ['checkbook_id'])
    op.create_index('ix_checks_status', 'checks', ['status'])
    op.create_index('ix_checks_due_date', 'checks', ['due_date'])

    op.create_table(
        'instrument_links',
        _id(),
        sa.Column('instrument_type', _enum('linktype'), nullable=False),
        _fk('card_reader_id', 'card_readers.id', 'RESTRICT', unique=True),
        _fk('bank_account_id', 'bank_accounts.id', 'RESTRICT', unique=True),
        _fk('check_id', 'checks.id', 'RESTRICT', unique=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(CASE WHEN card_reader_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN bank_account_id IS NULL THEN 0 ELSE 1 END"
            " + CASE WHEN check_id IS NULL THEN 0 ELSE 1 END) = 1",
            name='ck_instrument_links_exactly_one_target',
        ),
    )

    # ===========================================
    # RECEIPTS & PAYMENTS
    # ===========================================
    for document, instrument_enum in (('receipt', 'receiptinstrument'), ('payment', 'paymentinstrument')):
        table = f'{document}s'
        op.create_table(
            table,
            _id(),
            sa.Column('number', sa.String(50), nullable=True),
            sa.Column('status', _enum('treasurydocumentstatus'), nullable=False, server_default='TEMPORARY'),
            sa.Column('date', sa.Date, nullable=False),
            _fk('fiscal_year_id', 'fiscal_years.id', 'RESTRICT'),
            _fk('detail_id', 'details.id', 'RESTRICT'),
            _fk('special_code_id', 'codes.id', 'RESTRICT'),
            sa.Column('description', sa.String(500), nullable=True),
            _money('total_amount'),
            _fk('cashbox_id', 'cashboxes.id', 'RESTRICT'),
            _fk('journal_id', 'journals.id', 'SET NULL'),
            *_timestamps(),
            sa.UniqueConstraint('fiscal_year_id', 'number', name=f'uq_{table}_fiscal_year_number'),
        )
        op.create_index(f'ix_{table}_fiscal_year_id', table, ['fiscal_year_id'])
        op.create_index(f'ix_{table}_journal_id', table, ['journal_id'])

        items = f'{document}_items'
        op.create_table(
            items,
            _id(),
            _fk(f'{document}_id', f'{table}.id', 'CASCADE', nullable=False),
            sa.Column('instrument_type', _enum(instrument_enum), nullable=False),
            _money('amount', default=False),
            sa.Column('reference', sa.String(100), nullable=True),
            _fk('related_instrument_id', 'instrument_links.id', 'RESTRICT'),
            sa.Column('position', sa.Integer, nullable=False, server_default=sa.text('0')),
            *_timestamps(),
        )
        op.create_index(f'ix_{items}_{document}_id', items, [f'{document}_id'])
        op.create_index(f'ix_{items}_related_instrument_id', items, ['related_instrument_id'])


def downgrade() -> None:
    for table in (
        'payment_items', 'payments', 'receipt_items', 'receipts',
        'instrument_links', 'checks', 'checkbooks', 'card_readers',
        'bank_accounts', 'cashboxes', 'sequence_counters', 'journal_items',
        'journals', 'settings', 'invoices', 'fiscal_years',
        'details_detail_levels', 'detail_level_specific_codes',
        'detail_levels', 'details', 'codes',
    ):
        op.drop_table(table)

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
