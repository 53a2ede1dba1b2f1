"""Return request Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.return_request import RefundStatus, ReturnReason, ReturnStatus, ReturnType


class ReturnItemRequest(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: str = Field(..., min_length=1, description="Order line item id")
    quantity: int = Field(..., ge=1, description="Units to return")
    reason: ReturnReason | None = Field(default=None, description="Per-item reason, defaults to the request reason")


class CreateReturnRequest(BaseModel):
    """Schema for POST /returns."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Delivered order")
    type: ReturnType = Field(default="return", description="return, exchange or refund")
    items: list[ReturnItemRequest] = Field(..., min_length=1, description="Items to return")
    reason: ReturnReason = Field(description="Overall reason")
    description: str | None = Field(default=None, max_length=1000, description="Details")
    images: list[str] = Field(default_factory=list, max_length=5, description="Evidence image URLs")


class ReturnItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: str = Field(description="Order line item id")
    product_id: str = Field(description="Product UUID")
    name: str = Field(description="Product name")
    price: Decimal = Field(description="Unit price paid")
    quantity: int = Field(description="Units returned")
    size: str | None = Field(default=None, description="Size")
    reason: str | None = Field(default=None, description="Reason")


class ReturnResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Return id")
    return_number: str = Field(description="Human-readable return number")
    order_id: UUID = Field(description="Order being returned")
    user_id: UUID = Field(description="Customer")
    type: ReturnType = Field(description="Return type")
    status: ReturnStatus = Field(description="Workflow status")
    items: list[ReturnItemSchema] = Field(description="Returned items")
    return_reason: str = Field(description="Overall reason")
    return_description: str | None = Field(default=None, description="Details")
    images: list[str] = Field(default_factory=list, description="Evidence image URLs")
    refund_amount: Decimal = Field(description="Refund due")
    refund_status: RefundStatus = Field(description="Refund status")
    refund_id: str | None = Field(default=None, description="Gateway refund id")
    admin_notes: str | None = Field(default=None, description="Notes from the reviewing admin")
    processed_at: datetime | None = Field(default=None, description="Last admin action")
    completed_at: datetime | None = Field(default=None, description="Completion timestamp")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class ReturnListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    items: list[ReturnResponse] = Field(description="Return requests")


class UpdateReturnStatusRequest(BaseModel):
    """Schema for PUT /admin/returns/{return_id}/status."""

    model_config = ConfigDict(from_attributes=True)

    status: Literal["approved", "rejected", "processing", "completed", "cancelled"] = Field(
        description="Target status"
    )
    admin_notes: str | None = Field(default=None, max_length=1000, description="Notes shown to the customer")
