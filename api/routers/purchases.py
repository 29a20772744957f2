"""
Purchases API Endpoints.

Read-only endpoint for polling the authoritative status of a purchase.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_purchase_store
from api.models import PurchaseStatusResponse
from repositories.purchase_repository import PurchaseStore
from services.errors import PurchaseNotFound
from services.status_service import get_purchase_status

router = APIRouter()


@router.get(
    "/purchases/{purchase_id}/status",
    response_model=PurchaseStatusResponse,
    summary="Get Purchase Status",
    description="Return the reconciled status of a purchase."
)
def read_purchase_status(
    purchase_id: str,
    store: PurchaseStore = Depends(get_purchase_store),  # noqa: B008
):
    """
    Get the status of a purchase.

    Use this after the buyer returns from MercadoPago instead of trusting the
    query parameters on the return URL.

    **Example usage:**
    ```
    GET /api/v1/purchases/123e4567-e89b-12d3-a456-426614174000/status
    ```

    **Response:**
    ```json
    {"id": "123e4567-e89b-12d3-a456-426614174000", "status": "pending"}
    ```
    """
    try:
        purchase_uuid = UUID(purchase_id)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail="Invalid UUID format for purchase_id"
        )

    try:
        view = get_purchase_status(purchase_uuid, store)
    except PurchaseNotFound:
        raise HTTPException(
            status_code=404,
            detail=f"Purchase not found: {purchase_id}"
        )

    return PurchaseStatusResponse(id=view.purchase_id, status=view.status.value)
