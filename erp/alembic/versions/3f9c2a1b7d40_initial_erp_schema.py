"""initial erp schema: ledger, inventory, orders, loans

Revision ID: 3f9c2a1b7d40
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9c2a1b7d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# enum types are created once up front, then referenced with create_type=False
ENUMS = {
    "role": ("admin", "manager", "employee"),
    "currency": ("EGP", "SAR", "AED", "QAR", "EUR", "USD"),
    "account_type": ("asset", "liability", "equity", "revenue", "expense"),
    "entry_status": ("draft", "posted", "void"),
    "inventory_status": ("active", "inactive", "maintenance"),
    "stock_status": ("in_stock", "low_stock", "out_of_stock", "overstock"),
    "transfer_status": ("draft", "shipping", "delivered", "cancelled"),
    "order_status": ("draft", "approved", "shipped", "delivered", "canceled", "invoiced"),
    "borrower_type": ("organization", "user"),
    "loan_status": ("pending", "approved", "active", "rejected", "completed", "defaulted"),
    "installment_status": ("pending", "paid", "overdue", "cancelled"),
    "payment_method": ("cash", "bank_transfer", "check", "online"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # ---------- MASTER DATA ----------
    op.create_table(
        "organizations",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("trade_name", sa.String(200), nullable=False, unique=True),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("organization_id", sa.BigInteger(), sa.ForeignKey("organizations.id", ondelete="SET NULL")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("role", _enum("role"), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
    )

    # ---------- LEDGER ----------
    op.create_table(
        "accounts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("type", _enum("account_type"), nullable=False),
        sa.Column("subtype", sa.String(64)),
        sa.Column("description", sa.Text()),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("currency", _enum("currency"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("parent_account_id", sa.BigInteger(), sa.ForeignKey("accounts.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_accounts_type", "accounts", ["type"])
    op.create_index("ix_accounts_is_active", "accounts", ["is_active"])

    op.create_table(
        "journals",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(32), nullable=False, unique=True),
        sa.Column("journal_type", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_journals_journal_type", "journals", ["journal_type"])

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("journal_id", sa.BigInteger(), sa.ForeignKey("journals.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reference", sa.String(128)),
        sa.Column("notes", sa.Text()),
        sa.Column("status", _enum("entry_status"), nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_journal_entries_journal_id", "journal_entries", ["journal_id"])
    op.create_index("ix_journal_entries_reference", "journal_entries", ["reference"])

    op.create_table(
        "journal_entry_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "entry_id", sa.BigInteger(), sa.ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("description", sa.String(500)),
        sa.Column("debit", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("credit", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.CheckConstraint("debit >= 0", name="ck_je_line_debit_nonneg"),
        sa.CheckConstraint("credit >= 0", name="ck_je_line_credit_nonneg"),
    )
    op.create_index("ix_journal_entry_lines_entry_id", "journal_entry_lines", ["entry_id"])
    op.create_index("ix_journal_entry_lines_account_id", "journal_entry_lines", ["account_id"])

    op.create_table(
        "account_mappings",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("role", sa.String(64), nullable=False, unique=True),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("accounts.id", ondelete="SET NULL")),
        sa.Column("journal_id", sa.BigInteger(), sa.ForeignKey("journals.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    # ---------- INVENTORY ----------
    op.create_table(
        "inventories",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("location", sa.String(200), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("status", _enum("inventory_status"), nullable=False),
        sa.Column("organization_id", sa.BigInteger(), sa.ForeignKey("organizations.id", ondelete="SET NULL")),
        sa.Column("manager_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("description", sa.String(500)),
        sa.Column("contact_phone", sa.String(32)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("capacity >= 0", name="ck_inventory_capacity_nonneg"),
    )
    op.create_index("ix_inventories_name", "inventories", ["name"])
    op.create_index("ix_inventories_status", "inventories", ["status"])
    op.create_index("ix_inventories_organization_id", "inventories", ["organization_id"])

    op.create_table(
        "stocks",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "inventory_id", sa.BigInteger(), sa.ForeignKey("inventories.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_quantity", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("max_quantity", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("status", _enum("stock_status"), nullable=False),
        sa.Column("last_updated_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "inventory_id", name="uq_stock_product_inventory"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_quantity_nonneg"),
        sa.CheckConstraint("min_quantity >= 0", name="ck_stock_min_nonneg"),
        sa.CheckConstraint("max_quantity >= 0", name="ck_stock_max_nonneg"),
    )
    op.create_index("ix_stocks_inventory_id", "stocks", ["inventory_id"])

    op.create_table(
        "stock_transfers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("reference", sa.String(64), nullable=False, unique=True),
        sa.Column("status", _enum("transfer_status"), nullable=False),
        sa.Column(
            "from_inventory_id", sa.BigInteger(), sa.ForeignKey("inventories.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column(
            "to_inventory_id", sa.BigInteger(), sa.ForeignKey("inventories.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("shipping_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("approved_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("shipped_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint("from_inventory_id <> to_inventory_id", name="ck_transfer_distinct_inventories"),
        sa.CheckConstraint("shipping_cost >= 0", name="ck_transfer_shipping_cost_nonneg"),
    )
    op.create_index("ix_stock_transfers_status", "stock_transfers", ["status"])

    op.create_table(
        "stock_transfer_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "transfer_id", sa.BigInteger(), sa.ForeignKey("stock_transfers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("unit", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("code", sa.String(64)),
        sa.CheckConstraint("unit >= 1", name="ck_transfer_line_unit_pos"),
    )
    op.create_index("ix_stock_transfer_lines_transfer_id", "stock_transfer_lines", ["transfer_id"])

    # ---------- PURCHASES / SALES ----------
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("organization_id", sa.BigInteger(), sa.ForeignKey("organizations.id", ondelete="RESTRICT")),
        sa.Column("invoice_number", sa.String(64), unique=True),
        sa.Column("status", _enum("order_status"), nullable=False),
        sa.Column("currency", _enum("currency"), nullable=False),
        sa.Column("expected_delivery_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("inventory_id", sa.BigInteger(), sa.ForeignKey("inventories.id", ondelete="SET NULL")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("delivered_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remaining_quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.CheckConstraint("quantity >= 1", name="ck_po_line_qty_pos"),
        sa.CheckConstraint("delivered_quantity >= 0", name="ck_po_line_delivered_nonneg"),
        sa.CheckConstraint("remaining_quantity >= 0", name="ck_po_line_remaining_nonneg"),
        sa.CheckConstraint("price >= 0", name="ck_po_line_price_nonneg"),
        sa.CheckConstraint("discount >= 0 AND discount <= 100", name="ck_po_line_discount_0_100"),
    )
    op.create_index("ix_purchase_order_lines_po_id", "purchase_order_lines", ["po_id"])

    op.create_table(
        "sale_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("customer_id", sa.BigInteger(), sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("organization_id", sa.BigInteger(), sa.ForeignKey("organizations.id", ondelete="RESTRICT")),
        sa.Column("invoice_number", sa.String(64), unique=True),
        sa.Column("status", _enum("order_status"), nullable=False),
        sa.Column("currency", _enum("currency"), nullable=False),
        sa.Column("expected_delivery_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("shipping_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "sale_order_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("sale_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("inventory_id", sa.BigInteger(), sa.ForeignKey("inventories.id", ondelete="SET NULL")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(64)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.CheckConstraint("quantity >= 1", name="ck_so_line_qty_pos"),
        sa.CheckConstraint("price >= 0", name="ck_so_line_price_nonneg"),
    )
    op.create_index("ix_sale_order_lines_order_id", "sale_order_lines", ["order_id"])

    # ---------- LOANS ----------
    op.create_table(
        "loans",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("borrower_type", _enum("borrower_type"), nullable=False),
        sa.Column("borrower_id", sa.BigInteger(), nullable=False),
        sa.Column("loan_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(7, 3), nullable=False),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("installment_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_payable", sa.Numeric(14, 2), nullable=False),
        sa.Column("remaining_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", _enum("loan_status"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("approved_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
        sa.CheckConstraint("loan_amount >= 0", name="ck_loan_amount_nonneg"),
        sa.CheckConstraint("interest_rate >= 0", name="ck_loan_interest_nonneg"),
        sa.CheckConstraint("installment_number >= 1", name="ck_loan_installments_pos"),
        sa.CheckConstraint("remaining_balance >= 0", name="ck_loan_remaining_nonneg"),
    )
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_borrower", "loans", ["borrower_type", "borrower_id"])

    op.create_table(
        "loan_installments",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("loan_id", sa.BigInteger(), sa.ForeignKey("loans.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", _enum("installment_status"), nullable=False),
        sa.Column("payment_date", sa.Date()),
        sa.Column("payment_method", _enum("payment_method")),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_installment_amount_nonneg"),
    )
    op.create_index("ix_loan_installments_due_date", "loan_installments", ["due_date"])
    op.create_index("ix_loan_installments_status", "loan_installments", ["status"])
    op.create_index("ix_installments_loan_due", "loan_installments", ["loan_id", "due_date"])


def downgrade() -> None:
    for table in (
        "loan_installments",
        "loans",
        "sale_order_lines",
        "sale_orders",
        "purchase_order_lines",
        "purchase_orders",
        "stock_transfer_lines",
        "stock_transfers",
        "stocks",
        "inventories",
        "account_mappings",
        "journal_entry_lines",
        "journal_entries",
        "journals",
        "accounts",
        "customers",
        "suppliers",
        "products",
        "users",
        "organizations",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
