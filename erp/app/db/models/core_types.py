import enum

class Role(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    employee = "employee"

class Currency(str, enum.Enum):
    EGP = "EGP"
    SAR = "SAR"
    AED = "AED"
    QAR = "QAR"
    EUR = "EUR"
    USD = "USD"

# ---------- LEDGER ----------
class AccountType(str, enum.Enum):
    asset = "asset"
    liability = "liability"
    equity = "equity"
    revenue = "revenue"
    expense = "expense"

class EntryStatus(str, enum.Enum):
    draft = "draft"
    posted = "posted"
    void = "void"

# ---------- INVENTORY ----------
class InventoryStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    maintenance = "maintenance"

class StockStatus(str, enum.Enum):
    in_stock = "in-stock"
    low_stock = "low-stock"
    out_of_stock = "out-of-stock"
    overstock = "overstock"

class TransferStatus(str, enum.Enum):
    draft = "draft"
    shipping = "shipping"
    delivered = "delivered"
    cancelled = "cancelled"

class OrderStatus(str, enum.Enum):
    draft = "draft"
    approved = "approved"
    shipped = "shipped"
    delivered = "delivered"
    canceled = "canceled"
    invoiced = "invoiced"

# ---------- LOANS ----------
class BorrowerType(str, enum.Enum):
    organization = "Organization"
    user = "User"

class LoanStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    active = "active"
    rejected = "rejected"
    completed = "completed"
    defaulted = "defaulted"

class InstallmentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"

class PaymentMethod(str, enum.Enum):
    cash = "cash"
    bank_transfer = "bank_transfer"
    check = "check"
    online = "online"
