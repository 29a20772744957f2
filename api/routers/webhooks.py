"""
MercadoPago Webhook Endpoints.

POST receives payment notifications; GET answers reachability checks.

Every notification is acknowledged with 200 except:
- 401 when the signature cannot be verified
- 400 when the confirmed amount does not match the purchase total
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from api.dependencies import get_payment_gateway, get_purchase_store, get_settings
from api.models import WebhookAckResponse
from clients.mercadopago_client import PaymentGateway
from repositories.purchase_repository import PurchaseStore
from services.errors import AmountMismatch, AuthenticationFailure
from services.notification_service import handle_notification
from services.settings import Settings

router = APIRouter()


@router.get(
    "/webhooks/mercadopago",
    summary="Webhook Reachability",
    description="Static payload used to confirm the webhook URL is reachable."
)
def webhook_liveness():
    return {"status": "ok", "service": "mercadopago-webhook"}


@router.post(
    "/webhooks/mercadopago",
    response_model=WebhookAckResponse,
    summary="MercadoPago Notification",
    description="Receive a payment notification and reconcile the purchase status."
)
async def receive_notification(
    request: Request,
    store: PurchaseStore = Depends(get_purchase_store),  # noqa: B008
    gateway: PaymentGateway = Depends(get_payment_gateway),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
):
    """
    Handle a MercadoPago notification.

    **Example body:**
    ```json
    {"type": "payment", "action": "payment.updated", "data": {"id": "1234567890"}}
    ```

    Headers `x-signature` (`ts=...,v1=...`) and `x-request-id` are verified
    against `MERCADOPAGO_WEBHOOK_SECRET`.
    """
    raw_body = await request.body()

    try:
        outcome = await run_in_threadpool(
            handle_notification,
            raw_body,
            dict(request.headers),
            store,
            gateway,
            settings,
            dict(request.query_params),
        )
    except AuthenticationFailure as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AmountMismatch as e:
        raise HTTPException(status_code=400, detail=str(e))

    return WebhookAckResponse(received=outcome.received, outcome=outcome.outcome)
