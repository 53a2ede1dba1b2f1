"""Return request model type definitions and lifecycle rules."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


ReturnStatus = Literal["pending", "approved", "rejected", "processing", "completed", "cancelled"]
RefundStatus = Literal["pending", "processing", "completed", "failed"]
ReturnType = Literal["return", "exchange", "refund"]
ReturnReason = Literal[
    "defective_product",
    "wrong_item",
    "size_issue",
    "quality_issue",
    "not_as_described",
    "damaged_packaging",
    "changed_mind",
    "other",
]

RETURN_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "rejected", "cancelled"}),
    "approved": frozenset({"processing", "completed"}),
    "processing": frozenset({"completed"}),
    "rejected": frozenset(),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

# Returns in these statuses still hold a claim on their items' quantities
ACTIVE_RETURN_STATUSES = frozenset({"pending", "approved", "processing", "completed"})


class ReturnItem(TypedDict):
    item_id: str
    product_id: str
    name: str
    price: str
    quantity: int
    size: str | None
    reason: ReturnReason | None


class ReturnRequest(TypedDict):
    """returns table row representation."""

    id: UUID
    user_id: UUID
    order_id: UUID
    return_number: str
    items: list[ReturnItem]
    return_reason: ReturnReason
    return_description: str | None
    images: list[str]
    type: ReturnType
    status: ReturnStatus
    refund_amount: str
    refund_status: RefundStatus
    refund_id: str | None
    admin_notes: str | None
    processed_by: UUID | None
    processed_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
