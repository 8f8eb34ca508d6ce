from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
    event,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from erp.app.db.base import Base, BigIntPK
from erp.app.db.models.core_types import (
    Role,
    Currency,
    AccountType,
    EntryStatus,
    InventoryStatus,
    StockStatus,
    TransferStatus,
    OrderStatus,
    BorrowerType,
    LoanStatus,
    InstallmentStatus,
    PaymentMethod,
)
from erp.errors import UnbalancedEntryError

ZERO = Decimal("0.00")

# shared by several tables (one PostgreSQL enum type each)
CurrencyEnum = Enum(Currency, name="currency")
OrderStatusEnum = Enum(OrderStatus, name="order_status")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


# ---------- MASTER DATA ----------
class Organization(Base):
    __tablename__ = "organizations"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    trade_name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    organization_id: Mapped[int | None] = mapped_column(ForeignKey("organizations.id", ondelete="SET NULL"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.employee, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))


class Customer(Base):
    __tablename__ = "customers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))


# ---------- LEDGER ----------
class Account(Base):
    __tablename__ = "accounts"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[AccountType] = mapped_column(Enum(AccountType, name="account_type"), nullable=False, index=True)
    subtype: Mapped[str | None] = mapped_column(String(64))
    description: Mapped[str | None] = mapped_column(Text)
    # single running balance: debit adds, credit subtracts, whatever the type
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    currency: Mapped[Currency] = mapped_column(CurrencyEnum, default=Currency.EGP, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    parent_account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    parent_account: Mapped[Account | None] = relationship(remote_side="Account.id")


class Journal(Base):
    __tablename__ = "journals"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    journal_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class JournalEntry(Base):
    __tablename__ = "journal_entries"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    journal_id: Mapped[int] = mapped_column(
        ForeignKey("journals.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    entry_date: Mapped[date] = mapped_column("date", Date, default=date.today, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(128), index=True)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[EntryStatus] = mapped_column(
        Enum(EntryStatus, name="entry_status"),
        default=EntryStatus.draft,
        nullable=False,
    )
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    journal: Mapped[Journal] = relationship()
    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_no",
    )

    def totals(self) -> tuple[Decimal, Decimal]:
        debit = sum((_dec(l.debit) for l in self.lines), ZERO)
        credit = sum((_dec(l.credit) for l in self.lines), ZERO)
        return debit, credit

    def is_balanced(self) -> bool:
        debit, credit = self.totals()
        return debit == credit


class JournalEntryLine(Base):
    __tablename__ = "journal_entry_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(String(500))
    debit: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    credit: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")
    account: Mapped[Account] = relationship()

    __table_args__ = (
        CheckConstraint("debit >= 0", name="ck_je_line_debit_nonneg"),
        CheckConstraint("credit >= 0", name="ck_je_line_credit_nonneg"),
    )


class AccountMapping(Base):
    """Well-known posting role (``cash-account``, ``sales-journal`` ...) -> ledger row."""

    __tablename__ = "account_mappings"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    role: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    journal_id: Mapped[int | None] = mapped_column(ForeignKey("journals.id", ondelete="SET NULL"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


@event.listens_for(Session, "before_flush")
def _reject_unbalanced_entries(session, flush_context, instances):
    entries = set()
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, JournalEntry):
            entries.add(obj)
        elif isinstance(obj, JournalEntryLine) and obj.entry is not None:
            entries.add(obj.entry)

    for entry in entries:
        if entry in session.deleted:
            continue
        debit, credit = entry.totals()
        if debit != credit:
            raise UnbalancedEntryError(debit, credit, entry_id=entry.id)


# ---------- INVENTORY ----------
class Inventory(Base):
    __tablename__ = "inventories"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    # FREE remaining capacity, not total size
    capacity: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)
    status: Mapped[InventoryStatus] = mapped_column(
        Enum(InventoryStatus, name="inventory_status"),
        default=InventoryStatus.active,
        nullable=False,
        index=True,
    )
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"),
        index=True,
    )
    manager_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    description: Mapped[str | None] = mapped_column(String(500))
    contact_phone: Mapped[str | None] = mapped_column(String(32))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (CheckConstraint("capacity >= 0", name="ck_inventory_capacity_nonneg"),)


class Stock(Base):
    __tablename__ = "stocks"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    inventory_id: Mapped[int] = mapped_column(
        ForeignKey("inventories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_quantity: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    max_quantity: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)
    status: Mapped[StockStatus] = mapped_column(
        Enum(StockStatus, name="stock_status"),
        default=StockStatus.in_stock,
        nullable=False,
    )
    last_updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("product_id", "inventory_id", name="uq_stock_product_inventory"),
        CheckConstraint("quantity >= 0", name="ck_stock_quantity_nonneg"),
        CheckConstraint("min_quantity >= 0", name="ck_stock_min_nonneg"),
        CheckConstraint("max_quantity >= 0", name="ck_stock_max_nonneg"),
    )

    def is_sufficient(self, required: int) -> bool:
        return self.quantity >= required

    @property
    def available_quantity(self) -> int:
        """Units that can leave without dropping below ``min_quantity``."""
        return max(0, self.quantity - self.min_quantity)


class StockTransfer(Base):
    __tablename__ = "stock_transfers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    reference: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[TransferStatus] = mapped_column(
        Enum(TransferStatus, name="transfer_status"),
        default=TransferStatus.draft,
        nullable=False,
        index=True,
    )
    from_inventory_id: Mapped[int] = mapped_column(ForeignKey("inventories.id", ondelete="RESTRICT"), nullable=False)
    to_inventory_id: Mapped[int] = mapped_column(ForeignKey("inventories.id", ondelete="RESTRICT"), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    from_inventory: Mapped[Inventory] = relationship(foreign_keys=[from_inventory_id])
    to_inventory: Mapped[Inventory] = relationship(foreign_keys=[to_inventory_id])
    lines: Mapped[list["StockTransferLine"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="StockTransferLine.id",
    )

    __table_args__ = (
        CheckConstraint("from_inventory_id <> to_inventory_id", name="ck_transfer_distinct_inventories"),
        CheckConstraint("shipping_cost >= 0", name="ck_transfer_shipping_cost_nonneg"),
    )

    def can_ship(self) -> bool:
        return self.status == TransferStatus.draft

    def can_deliver(self) -> bool:
        return self.status == TransferStatus.shipping


class StockTransferLine(Base):
    __tablename__ = "stock_transfer_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    transfer_id: Mapped[int] = mapped_column(
        ForeignKey("stock_transfers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    unit: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    code: Mapped[str | None] = mapped_column(String(64))

    transfer: Mapped[StockTransfer] = relationship(back_populates="lines")

    __table_args__ = (CheckConstraint("unit >= 1", name="ck_transfer_line_unit_pos"),)


# ---------- PURCHASES / SALES ----------
class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    organization_id: Mapped[int | None] = mapped_column(ForeignKey("organizations.id", ondelete="RESTRICT"))
    invoice_number: Mapped[str | None] = mapped_column(String(64), unique=True)
    status: Mapped[OrderStatus] = mapped_column(
        OrderStatusEnum,
        default=OrderStatus.draft,
        nullable=False,
    )
    currency: Mapped[Currency] = mapped_column(CurrencyEnum, default=Currency.EGP, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    supplier: Mapped[Supplier] = relationship()
    lines: Mapped[list["PurchaseOrderLine"]] = relationship(
        back_populates="po",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.id",
    )

    def total_remaining(self) -> int:
        return sum(l.remaining_quantity for l in self.lines)


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    po_id: Mapped[int] = mapped_column(ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    inventory_id: Mapped[int | None] = mapped_column(ForeignKey("inventories.id", ondelete="SET NULL"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    delivered_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remaining_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    po: Mapped[PurchaseOrder] = relationship(back_populates="lines")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_po_line_qty_pos"),
        CheckConstraint("delivered_quantity >= 0", name="ck_po_line_delivered_nonneg"),
        CheckConstraint("remaining_quantity >= 0", name="ck_po_line_remaining_nonneg"),
        CheckConstraint("price >= 0", name="ck_po_line_price_nonneg"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="ck_po_line_discount_0_100"),
    )


class SaleOrder(Base):
    __tablename__ = "sale_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)
    organization_id: Mapped[int | None] = mapped_column(ForeignKey("organizations.id", ondelete="RESTRICT"))
    invoice_number: Mapped[str | None] = mapped_column(String(64), unique=True)
    status: Mapped[OrderStatus] = mapped_column(
        OrderStatusEnum,
        default=OrderStatus.draft,
        nullable=False,
    )
    currency: Mapped[Currency] = mapped_column(CurrencyEnum, default=Currency.EGP, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    customer: Mapped[Customer] = relationship()
    lines: Mapped[list["SaleOrderLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SaleOrderLine.id",
    )


class SaleOrderLine(Base):
    __tablename__ = "sale_order_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("sale_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    inventory_id: Mapped[int | None] = mapped_column(ForeignKey("inventories.id", ondelete="SET NULL"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    order: Mapped[SaleOrder] = relationship(back_populates="lines")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_so_line_qty_pos"),
        CheckConstraint("price >= 0", name="ck_so_line_price_nonneg"),
    )


# ---------- LOANS ----------
class Loan(Base):
    __tablename__ = "loans"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # tagged union: (borrower_type, borrower_id) -> organizations | users
    borrower_type: Mapped[BorrowerType] = mapped_column(Enum(BorrowerType, name="borrower_type"), nullable=False)
    borrower_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    loan_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(Numeric(7, 3), nullable=False)
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_payable: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[LoanStatus] = mapped_column(
        Enum(LoanStatus, name="loan_status"),
        default=LoanStatus.pending,
        nullable=False,
        index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    installments: Mapped[list["LoanInstallment"]] = relationship(
        back_populates="loan",
        order_by="LoanInstallment.due_date",
    )

    __table_args__ = (
        CheckConstraint("loan_amount >= 0", name="ck_loan_amount_nonneg"),
        CheckConstraint("interest_rate >= 0", name="ck_loan_interest_nonneg"),
        CheckConstraint("installment_number >= 1", name="ck_loan_installments_pos"),
        CheckConstraint("remaining_balance >= 0", name="ck_loan_remaining_nonneg"),
        Index("ix_loans_borrower", "borrower_type", "borrower_id"),
    )

    def can_approve(self) -> bool:
        return self.status == LoanStatus.pending


class LoanInstallment(Base):
    __tablename__ = "loan_installments"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    loan_id: Mapped[int] = mapped_column(ForeignKey("loans.id", ondelete="RESTRICT"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[InstallmentStatus] = mapped_column(
        Enum(InstallmentStatus, name="installment_status"),
        default=InstallmentStatus.pending,
        nullable=False,
        index=True,
    )
    payment_date: Mapped[date | None] = mapped_column(Date)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(Enum(PaymentMethod, name="payment_method"))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    loan: Mapped[Loan] = relationship(back_populates="installments")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_installment_amount_nonneg"),
        Index("ix_installments_loan_due", "loan_id", "due_date"),
    )
