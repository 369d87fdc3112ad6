import enum
from sqlalchemy import Enum


class BorrowedStatus(str, enum.Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    DELAYED = "delayed"
    LOST = "lost"
    DAMAGED = "damaged"


class ItemStatus(str, enum.Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    LOST = "lost"
    DAMAGED = "damaged"


class LifecycleStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    def can_transition_to(self, target: "LifecycleStatus") -> bool:
        # Lifecycle only moves forward
        allowed = {
            LifecycleStatus.ACTIVE: {LifecycleStatus.COMPLETED, LifecycleStatus.CANCELLED, LifecycleStatus.ARCHIVED},
            LifecycleStatus.COMPLETED: {LifecycleStatus.ARCHIVED},
            LifecycleStatus.CANCELLED: {LifecycleStatus.ARCHIVED},
            LifecycleStatus.ARCHIVED: set(),
        }
        return target in allowed[self]

    @property
    def is_terminal(self) -> bool:
        return self != LifecycleStatus.ACTIVE


class StockAdjustmentType(str, enum.Enum):
    PURCHASE = "purchase"
    DAMAGE = "damage"
    LOST = "lost"
    DONATION = "donation"
    CORRECTION = "correction"

    @property
    def label(self) -> str:
        if self == StockAdjustmentType.CORRECTION:
            return "Stock Correction"
        return self.value.title()


class InvoiceStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    WAIVED = "waived"


class FineType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def db_enum(enum_cls):
    """Stored as the plain value string ('borrowed'), loaded back as the enum member"""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=20,
    )
