"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from services.settings import MAX_ITEM_QUANTITY, MAX_ITEMS_PER_CHECKOUT


# ============================================================================
# Checkout Models
# ============================================================================

class CheckoutItemRequest(BaseModel):
    """Single cart line in a checkout request."""
    id: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., gt=0, le=MAX_ITEM_QUANTITY)
    unit_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class CheckoutRequest(BaseModel):
    """Request to start (or retry) a checkout."""
    items: List[CheckoutItemRequest] = Field(
        ...,
        min_length=1,
        max_length=MAX_ITEMS_PER_CHECKOUT,
        description="Cart lines to pay for"
    )
    buyer_email: Optional[EmailStr] = Field(
        None,
        description="Buyer email, if known before payment"
    )
    purchase_id: Optional[UUID] = Field(
        None,
        description="Existing pending purchase to retry issuance for"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {"id": "course-101", "title": "Intro course", "quantity": 1, "unit_price": "100.00"}
                ],
                "buyer_email": "buyer@example.com"
            }
        }


class CheckoutResponse(BaseModel):
    """Response after a checkout session is issued."""
    purchase_id: UUID
    redirect_url: str
    preference_id: str
    total_amount: Decimal
    currency: str

    class Config:
        json_schema_extra = {
            "example": {
                "purchase_id": "123e4567-e89b-12d3-a456-426614174000",
                "redirect_url": "https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=123-abc",
                "preference_id": "123-abc",
                "total_amount": "100.00",
                "currency": "ARS"
            }
        }


# ============================================================================
# Purchase Models
# ============================================================================

class PurchaseStatusResponse(BaseModel):
    """Authoritative status of a purchase."""
    id: UUID
    status: str  # "pending", "approved" or "rejected"

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "status": "approved"
            }
        }


# ============================================================================
# Webhook Models
# ============================================================================

class WebhookAckResponse(BaseModel):
    """Acknowledgement returned to the payment provider."""
    received: bool = True
    outcome: Optional[str] = None

