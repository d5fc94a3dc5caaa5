import hmac

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from standardwebhooks import Webhook

from core.config import logger, CHECKOUT_WEBHOOK_SECRET
from utils.cart_snapshots import CartSnapshotStore, clear_cart_for_checkout, get_cart_store

router = APIRouter(prefix="/api/orders", tags=["orders"])

COMPLETED_EVENT_TYPES = {"checkout.session.completed", "payment.succeeded"}


def _event_object(payload: dict) -> dict:
    data_node = payload.get("data")
    if isinstance(data_node, dict) and isinstance(data_node.get("object"), dict):
        return data_node["object"]
    if isinstance(data_node, dict):
        return data_node
    return payload


def _customer_email(obj: dict) -> str:
    for key in ("customer_details", "customer"):
        node = obj.get(key)
        if isinstance(node, dict) and node.get("email"):
            return str(node["email"])
    return str(obj.get("customer_email") or obj.get("email") or "")


@router.post("/checkout-completed")
async def checkout_completed(request: Request, store: CartSnapshotStore = Depends(get_cart_store)):
    """
    Receives confirmed payments from the payment provider and clears the
    paying customer's abandoned cart.
    Security:
      - If CHECKOUT_WEBHOOK_SECRET starts with whsec_, verify the Standard Webhooks signature.
      - Otherwise require X-Checkout-Secret to equal the configured secret.
    """
    secret = CHECKOUT_WEBHOOK_SECRET
    if not secret:
        return JSONResponse({"error": "Webhook not configured"}, status_code=503)

    raw_body = await request.body()
    payload = None
    if secret.startswith("whsec_"):
        headers = {
            "webhook-id": request.headers.get("webhook-id") or "",
            "webhook-timestamp": request.headers.get("webhook-timestamp") or "",
            "webhook-signature": request.headers.get("webhook-signature") or "",
        }
        try:
            payload = Webhook(secret).verify(data=raw_body, headers=headers)
        except Exception as ex:
            logger.warning(f"[orders.webhook] invalid signature: {ex}")
            return JSONResponse({"error": "invalid signature"}, status_code=401)
    elif not hmac.compare_digest((request.headers.get("X-Checkout-Secret") or "").encode(), secret.encode()):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    if payload is None:
        try:
            payload = await request.json()
        except Exception as ex:
            logger.warning(f"[orders.webhook] invalid JSON: {ex}")
            return JSONResponse({"error": "invalid JSON"}, status_code=400)
    if not isinstance(payload, dict):
        return JSONResponse({"error": "invalid payload"}, status_code=400)

    evt_type = str(payload.get("type") or payload.get("event") or "").strip().lower()
    if evt_type not in COMPLETED_EVENT_TYPES:
        return {"ok": True, "ignored": evt_type}

    email = _customer_email(_event_object(payload))
    cleared = False
    try:
        cleared = clear_cart_for_checkout(store, email)
    except Exception as ex:
        # Acknowledge anyway; the payment itself is already recorded upstream
        logger.exception(f"Failed to clear abandoned cart for {email}: {ex}")
    return {"ok": True, "cart_cleared": cleared}
