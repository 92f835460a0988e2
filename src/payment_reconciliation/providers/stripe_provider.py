"""Stripe-backed provider gateway for reconciliation."""

import os
import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

import stripe

from ..exceptions import ProviderFault
from .base import ProviderGateway, ProviderStatus, ProviderStatusSnapshot

logger = logging.getLogger(__name__)

PROVIDER_NAME = "stripe"

PROCESSING_STATUSES = frozenset([
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
    "processing",
    "requires_capture",
])


class StripeProviderGateway(ProviderGateway):
    """Looks up PaymentIntents to report their reconciliation status."""
    
    def __init__(self, api_key: Optional[str] = None):
        """Initialize the Stripe gateway.
        
        Args:
            api_key: Stripe API key. Falls back to STRIPE_API_KEY env var.
        
        Raises:
            ValueError: If no API key is provided or found.
        """
        self._api_key = api_key or os.getenv("STRIPE_API_KEY")
        if not self._api_key:
            raise ValueError(
                "STRIPE_API_KEY must be provided either as argument or environment variable"
            )
    
    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME
    
    def _configure_stripe(self) -> None:
        """Configure the Stripe SDK with the API key."""
        stripe.api_key = self._api_key
    
    @staticmethod
    def _is_fully_refunded(payment_intent: Any) -> bool:
        charge = payment_intent.get("latest_charge")
        # Unexpanded charges are plain IDs and carry no refund information.
        if not charge or isinstance(charge, str):
            return False
        return bool(charge.get("refunded"))
    
    def _to_snapshot(self, payment_intent: Any) -> ProviderStatusSnapshot:
        """Convert a Stripe PaymentIntent to a status snapshot.
        
        Args:
            payment_intent: Stripe PaymentIntent object.
        
        Returns:
            ProviderStatusSnapshot for the intent.
        """
        stripe_status = payment_intent.get("status")
        last_error = payment_intent.get("last_payment_error")
        error_code = None
        error_message = None
        
        if stripe_status == "succeeded":
            if self._is_fully_refunded(payment_intent):
                status = ProviderStatus.REFUNDED
            else:
                status = ProviderStatus.SUCCESSFUL
        elif stripe_status == "canceled" or (
            stripe_status == "requires_payment_method" and last_error
        ):
            status = ProviderStatus.FAILED
            if last_error:
                error_code = last_error.get("decline_code") or last_error.get("code")
                error_message = last_error.get("message")
            else:
                error_code = payment_intent.get("cancellation_reason") or "canceled"
                error_message = "Payment was canceled"
        elif stripe_status in PROCESSING_STATUSES:
            status = ProviderStatus.PROCESSING
        else:
            logger.warning(f"Unrecognised Stripe status {stripe_status} for {payment_intent.get('id')}")
            status = None
        
        amount = payment_intent.get("amount")
        currency = payment_intent.get("currency")
        created = payment_intent.get("created")
        
        return ProviderStatusSnapshot(
            provider_reference=payment_intent.get("id"),
            status=status,
            amount=Decimal(amount) / Decimal(100) if amount is not None else None,
            currency=currency.upper() if currency else None,
            error_code=error_code,
            error_message=error_message,
            processed_at=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
        )
    
    def _retrieve(self, provider_reference: str) -> Dict[str, Any]:
        self._configure_stripe()
        payment_intent = stripe.PaymentIntent.retrieve(provider_reference, expand=["latest_charge"])
        return payment_intent.to_dict() if hasattr(payment_intent, "to_dict") else payment_intent
    
    async def get_status(self, provider_reference: str) -> ProviderStatusSnapshot:
        """Fetch a PaymentIntent and map it to a status snapshot.
        
        Args:
            provider_reference: The Stripe PaymentIntent ID.
        
        Returns:
            ProviderStatusSnapshot, NOT_FOUND for unknown intents.
        
        Raises:
            ProviderFault: On authentication, connection, rate-limit or API errors.
        """
        try:
            payment_intent = await asyncio.to_thread(self._retrieve, provider_reference)
        except stripe.InvalidRequestError as e:
            if "No such payment_intent" in str(e):
                logger.warning(f"PaymentIntent {provider_reference} not found")
                return ProviderStatusSnapshot(
                    provider_reference=provider_reference,
                    status=ProviderStatus.NOT_FOUND,
                )
            raise ProviderFault(
                f"Invalid Stripe request: {e}", PROVIDER_NAME, provider_reference, retryable=False
            ) from e
        except stripe.AuthenticationError as e:
            logger.error("Stripe authentication failed")
            raise ProviderFault(
                "Invalid Stripe API key", PROVIDER_NAME, provider_reference, retryable=False
            ) from e
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            logger.warning(f"Transient Stripe error: {type(e).__name__}")
            raise ProviderFault(
                f"Stripe API unavailable: {type(e).__name__}",
                PROVIDER_NAME,
                provider_reference,
                retryable=True,
            ) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe API error: {type(e).__name__}")
            retryable = bool(e.http_status and e.http_status >= 500)
            raise ProviderFault(
                f"Stripe API error: {e}", PROVIDER_NAME, provider_reference, retryable=retryable
            ) from e
        
        return self._to_snapshot(payment_intent)
