"""
Typed errors shared by the models (flush guards) and the ERP services.

Every error carries a human message, a machine-readable ``code``, structured
``data`` and a ``status_code`` classification used by the HTTP layer:

    ERPError
    +-- ValidationError (400)
    |   +-- UnbalancedEntryError
    |   +-- InsufficientStockError
    |   +-- InsufficientCapacityError
    |   +-- ReferencedError
    +-- NotFoundError (404)
    +-- StateConflictError (409)
        +-- EntryAlreadyPostedError

Errors are raised before any mutation of the failing unit of work and are
never retried by the services.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class ERPError(Exception):
    status_code = 500
    code = "ERP_ERROR"

    def __init__(self, message: str, **data: Any):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "data": self.data}


class ValidationError(ERPError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(ERPError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"No {entity} found with ID: {entity_id}", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class StateConflictError(ERPError):
    status_code = 409
    code = "STATE_CONFLICT"


class UnbalancedEntryError(ValidationError):
    code = "UNBALANCED_ENTRY"

    def __init__(self, debits: Decimal, credits: Decimal, entry_id: int | None = None):
        super().__init__(
            "Total debits must equal total credits",
            debits=str(debits),
            credits=str(credits),
            entry_id=entry_id,
        )
        self.debits = debits
        self.credits = credits


class InsufficientStockError(ValidationError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, inventory_id: int, available: int, required: int):
        super().__init__(
            f"Insufficient stock for product: {product_id}",
            product_id=product_id,
            inventory_id=inventory_id,
            available=available,
            required=required,
        )


class InsufficientCapacityError(ValidationError):
    code = "INSUFFICIENT_CAPACITY"

    def __init__(self, inventory_id: int, capacity: int, required: int):
        super().__init__(
            f"Insufficient capacity. Available: {capacity}",
            inventory_id=inventory_id,
            capacity=capacity,
            required=required,
        )


class ReferencedError(ValidationError):
    code = "REFERENCED"


class EntryAlreadyPostedError(StateConflictError):
    code = "ALREADY_POSTED"

    def __init__(self, entry_id: int):
        super().__init__("Journal entry already posted", entry_id=entry_id)
