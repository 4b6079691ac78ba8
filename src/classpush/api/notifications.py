"""Push notification API endpoints."""

import asyncio

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from classpush.notifications.errors import (
    PayloadTooLargeError,
    ValidationError,
)
from classpush.notifications.models import (
    NotificationPayload,
    PushSubscription,
    decode_subscription,
)


class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class SubscriptionBody(BaseModel):
    """Shape of ``PushSubscription.toJSON()`` in the browser."""

    endpoint: str
    keys: SubscriptionKeys


class SubscribeRequest(BaseModel):
    user_id: str
    subscription: SubscriptionBody


class UnsubscribeRequest(BaseModel):
    user_id: str
    endpoint: str


class SendRequest(BaseModel):
    user_id: str
    payload: NotificationPayload


router = APIRouter()


@router.get("/vapid-key")
async def vapid_key(request: Request) -> dict:
    """Return the VAPID application server key."""
    return {"public_key": request.app.state.vapid_public_key}


@router.post("/subscribe", status_code=201)
async def subscribe(body: SubscribeRequest, request: Request) -> dict:
    """Register a push subscription for a user."""
    sub = PushSubscription(
        endpoint=body.subscription.endpoint,
        p256dh=body.subscription.keys.p256dh,
        auth=body.subscription.keys.auth,
    )
    try:
        decode_subscription(sub)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    store = request.app.state.push_store
    store.subscribe(
        user_id=body.user_id,
        endpoint=sub.endpoint,
        p256dh=sub.p256dh,
        auth=sub.auth,
    )
    return {"ok": True}


@router.post("/unsubscribe")
async def unsubscribe(body: UnsubscribeRequest, request: Request) -> dict:
    """Remove one push subscription of a user."""
    store = request.app.state.push_store
    store.unsubscribe(user_id=body.user_id, endpoint=body.endpoint)
    return {"ok": True}


@router.get("/subscriptions")
async def subscriptions(user_id: str, request: Request) -> list[str]:
    """Return endpoints registered by a user."""
    store = request.app.state.push_store
    return store.get_endpoints_for_user(user_id)


@router.post("/send")
async def send(body: SendRequest, request: Request) -> dict:
    """Deliver a notification to all of a user's devices."""
    notifier = request.app.state.push_notifier
    if notifier is None:
        raise HTTPException(status_code=503, detail="push notifications disabled")
    data = body.payload.to_bytes()
    if len(data) > notifier.max_payload_size:
        raise HTTPException(
            status_code=413,
            detail=str(PayloadTooLargeError(len(data), notifier.max_payload_size)),
        )
    sent = await asyncio.to_thread(notifier.notify_user, body.user_id, data)
    return {"sent": sent}
