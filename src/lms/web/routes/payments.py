"""Checkout, Stripe webhook and subscription endpoints."""

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from lms.config import load_app_config
from lms.core import payments, subscriptions
from lms.core.stripe_webhook import StripeWebhookHandler
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import get_current_user, require_feature
from lms.web.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    ExpiryCheckResponse,
    SubscriptionResponse,
    SubscriptionViewResponse,
)

logger = structlog.get_logger(__name__)

checkout_router = APIRouter(prefix="/api/checkout", tags=["payments"])
webhooks_router = APIRouter(prefix="/api/webhooks", tags=["payments"])
subscriptions_router = APIRouter(
    prefix="/api/subscriptions",
    tags=["subscriptions"],
    dependencies=[Depends(require_feature("subscriptions"))],
)


@checkout_router.post("", response_model=CheckoutResponse)
def create_checkout(body: CheckoutRequest, user: ProfileRecord = Depends(get_current_user)) -> CheckoutResponse:
    """Start a purchase.

    Free products (or a server without Stripe keys) grant access at once;
    otherwise a Stripe Checkout Session is returned.
    """
    result = payments.create_checkout(
        user,
        course_id=body.course_id,
        book_id=body.book_id,
        purchase_type=body.purchase_type,
        payment_type=body.payment_type,
    )
    return CheckoutResponse.model_validate(result)


@webhooks_router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> dict:
    """Receive Stripe events; the raw body is needed for signature checks.

    Handling calls the Stripe API and SQLite, so it runs off the event loop.
    """
    payload = await request.body()
    handler = StripeWebhookHandler()
    return await run_in_threadpool(handler.handle, payload, stripe_signature)


@subscriptions_router.get("", response_model=list[SubscriptionViewResponse])
async def list_subscriptions(user: ProfileRecord = Depends(get_current_user)) -> list[SubscriptionViewResponse]:
    return [SubscriptionViewResponse.model_validate(v) for v in subscriptions.list_subscriptions(user)]


@subscriptions_router.post("/check-expiring", response_model=ExpiryCheckResponse)
async def check_expiring(authorization: str | None = Header(default=None)) -> ExpiryCheckResponse:
    """Scheduled trigger for expiry reminders, guarded by CRON_SECRET when set."""
    cron_secret = load_app_config().get_cron_secret()
    if cron_secret and authorization != f"Bearer {cron_secret}":
        logger.warning("subscriptions.cron_unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return ExpiryCheckResponse.model_validate(subscriptions.check_expiring_subscriptions())


@subscriptions_router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: str,
    user: ProfileRecord = Depends(get_current_user),
) -> SubscriptionResponse:
    """Cancel at the end of the current period."""
    return SubscriptionResponse.model_validate(subscriptions.cancel_subscription(user, subscription_id))


@subscriptions_router.post("/{subscription_id}/resume", response_model=SubscriptionResponse)
async def resume_subscription(
    subscription_id: str,
    user: ProfileRecord = Depends(get_current_user),
) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(subscriptions.resume_subscription(user, subscription_id))
