"""
Checkout API Endpoints.

Endpoint for issuing MercadoPago Checkout Pro sessions.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_payment_gateway, get_purchase_store, get_settings
from api.models import CheckoutRequest as APICheckoutRequest, CheckoutResponse
from clients.mercadopago_client import PaymentGateway
from domain.checkout import CheckoutItem
from repositories.purchase_repository import PurchaseStore
from services.checkout_service import CheckoutRequest, create_checkout
from services.errors import (
    AmountExceedsLimit,
    CheckoutValidationError,
    PurchaseNotFound,
    PurchaseStoreUnavailable,
    UnsafeRedirectScheme,
    UpstreamUnavailable,
)
from services.settings import Settings

router = APIRouter()


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=201,
    summary="Create Checkout",
    description="Create a pending purchase and a MercadoPago checkout session for the cart."
)
def create_checkout_session(
    request: APICheckoutRequest,
    store: PurchaseStore = Depends(get_purchase_store),  # noqa: B008
    gateway: PaymentGateway = Depends(get_payment_gateway),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
):
    """
    Start a checkout.

    **Process:**
    1. Validates items and computes the total
    2. Creates a pending purchase
    3. Creates the MercadoPago preference, keyed by the purchase id
    4. Returns the URL to redirect the buyer to

    **Retrying:**
    If the payment provider was unavailable (502) or the purchase could not be
    fully recorded (503), the response includes the purchase id. Send the same
    items again with `purchase_id` set; no duplicate checkout session is created.

    The redirect back from MercadoPago does not prove payment. Poll
    `GET /purchases/{id}/status` for the authoritative status.
    """
    try:
        items = [
            CheckoutItem(
                item_id=item.id,
                title=item.title,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in request.items
        ]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        result = create_checkout(
            CheckoutRequest(
                items=items,
                buyer_email=str(request.buyer_email) if request.buyer_email else None,
                purchase_id=request.purchase_id,
            ),
            store=store,
            gateway=gateway,
            settings=settings,
        )
    except (CheckoutValidationError, AmountExceedsLimit) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PurchaseNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UnsafeRedirectScheme as e:
        raise HTTPException(status_code=500, detail=f"Checkout is misconfigured: {str(e)}")
    except PurchaseStoreUnavailable as e:
        raise HTTPException(
            status_code=503,
            detail={"message": str(e), "purchase_id": str(e.purchase_id)},
        )
    except UpstreamUnavailable as e:
        raise HTTPException(
            status_code=502,
            detail={
                "message": str(e),
                "purchase_id": str(e.purchase_id) if e.purchase_id else None,
            },
        )

    return CheckoutResponse(
        purchase_id=result.purchase_id,
        redirect_url=result.redirect_url,
        preference_id=result.preference_id,
        total_amount=result.total_amount,
        currency=result.currency,
    )
