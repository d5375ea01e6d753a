# backend/practicebook/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    GET /{booking_id}      → Stable payment link; redirects to Stripe Checkout
    POST /webhooks/stripe  → Handle Stripe webhooks

Neither endpoint takes the practitioner header: clients follow the payment
link from their email and Stripe authenticates webhooks by signature.
"""

import asyncio
import logging
from typing import Any, Dict, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.params import Path
from fastapi.responses import RedirectResponse

from ...api.dependencies import get_payment_confirmation_service, get_payment_service
from ...core.exceptions import DomainException
from ...services.payment_confirmation_service import PaymentConfirmationService
from ...services.stripe_service import StripePaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/webhooks/stripe")
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripePaymentService = Depends(get_payment_service),
    confirmation_service: PaymentConfirmationService = Depends(get_payment_confirmation_service),
) -> Dict[str, Any]:
    """
    Handle Stripe webhook events.

    Signature failures are rejected with 400; everything else is
    acknowledged so Stripe stops redelivering.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = stripe_service.construct_webhook_event(payload, signature)
    except DomainException as e:
        handle_domain_exception(e)

    logger.info(f"Processing Stripe event {event.get('type')} ({event.get('id')})")
    try:
        result = await asyncio.to_thread(confirmation_service.handle_event, event)
    except DomainException as e:
        logger.error(f"Stripe event {event.get('id')} not processed: {e.message}")
        return {"received": True, "handled": False}
    return {"received": True, **result}


@router.get(
    "/{booking_id}",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    response_class=RedirectResponse,
    responses={
        404: {"description": "Booking or open bill not found"},
        422: {"description": "Booking canceled or already paid"},
    },
)
async def redirect_to_checkout(
    booking_id: str = Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    stripe_service: StripePaymentService = Depends(get_payment_service),
) -> RedirectResponse:
    try:
        url = await asyncio.to_thread(stripe_service.get_or_create_checkout_url, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
