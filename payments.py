import logging
from typing import Optional

import stripe
from fastapi import Depends

from config import Settings, get_settings

logger = logging.getLogger("drapegear.payments")


class PaymentGatewayError(Exception):
    pass


class PaymentsNotConfigured(PaymentGatewayError):
    pass


class PaymentGateway:
    """Thin client over Stripe payment intents."""

    def __init__(self, api_key: str, currency: str = "usd"):
        self.api_key = api_key
        self.currency = currency

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def create_payment_intent(self, amount: int, currency: Optional[str] = None) -> str:
        """Create a card payment intent for `amount` minor units and return its client secret."""
        if not self.configured:
            raise PaymentsNotConfigured("Payments are not configured")
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount,
                currency=currency or self.currency,
                payment_method_types=["card"],
            )
        except stripe.StripeError as exc:
            logger.error("Payment intent creation failed: %s", exc)
            raise PaymentGatewayError(str(exc)) from exc
        return intent.client_secret


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    return PaymentGateway(settings.stripe_secret_key, settings.payment_currency)
