"""
Domain events.
Services return events describing what happened; the caller (router or
console script) dispatches them after its unit of work has committed.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from models.communication import NotificationLog

logger = logging.getLogger(__name__)


class DomainEvent(BaseModel):
    event_type: str
    title: str
    body: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=datetime.now)


def transaction_opened(transaction) -> DomainEvent:
    count = len(transaction.items)
    book_text = "a book" if count == 1 else f"{count} books"
    return DomainEvent(
        event_type="transaction_opened",
        title=f"{transaction.user.name} Borrowed {book_text}",
        payload={"transaction_id": transaction.id, "reference_no": transaction.reference_no},
    )


def transaction_returned(transaction, total_fine: float, formatted_fine: str) -> DomainEvent:
    count = len(transaction.items)
    book_text = "a book" if count == 1 else f"{count} books"
    if total_fine > 0:
        body = f"{transaction.user.name} returned {book_text} with fines of {formatted_fine}"
    else:
        body = f"{transaction.user.name} returned {book_text} on time"
    return DomainEvent(
        event_type="transaction_returned",
        title=f"A Borrower Returned {book_text}",
        body=body,
        payload={
            "transaction_id": transaction.id,
            "status": transaction.status.value,
            "total_fine": total_fine,
        },
    )


def stock_adjusted(stock_transaction, item) -> DomainEvent:
    return DomainEvent(
        event_type="stock_adjusted",
        title=f"Stock {stock_transaction.type.label}: book #{item.book_id}",
        body=f"{item.old_stock} -> {item.new_stock}",
        payload={
            "reference_number": stock_transaction.reference_number,
            "book_id": item.book_id,
            "quantity": item.quantity,
            "old_stock": item.old_stock,
            "new_stock": item.new_stock,
        },
    )


def invoice_generated(invoice) -> DomainEvent:
    return DomainEvent(
        event_type="invoice_generated",
        title=f"Invoice {invoice.invoice_number} generated",
        payload={"invoice_id": invoice.id, "total_amount": invoice.total_amount},
    )


def dispatch(db: Session, events: List[DomainEvent]) -> int:
    """Log each event and keep a copy in notification_logs"""
    for event in events:
        logger.info("%s: %s %s", event.event_type, event.title, event.body)
        db.add(NotificationLog(
            event_type=event.event_type,
            title=event.title,
            body=event.body,
            payload=event.payload,
            created_at=event.occurred_at,
        ))
    if events:
        db.commit()
    return len(events)
