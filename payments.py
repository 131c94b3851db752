import logging
from dataclasses import dataclass

import stripe

from errors import CheckoutSessionError, ValidationError

logger = logging.getLogger("geoprice.payments")


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


class PaymentGateway:
    """Thin wrapper over the Stripe calls the storefront needs.

    The secret key is passed per call instead of through ``stripe.api_key``
    so several apps (and the tests) can live in one process.
    """

    def __init__(self, secret_key: str, webhook_secret: str, frontend_url: str):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.frontend_url = frontend_url.rstrip("/")

    def create_checkout_session(self, product, unit_amount: int, currency: str,
                                customer_country: str) -> CheckoutSession:
        session = stripe.checkout.Session.create(
            api_key=self.secret_key,
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {
                        "name": product.name,
                        "description": product.description,
                        "images": list(product.images),
                    },
                    "unit_amount": unit_amount,
                },
                "quantity": 1,
            }],
            mode="payment",
            success_url=f"{self.frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.frontend_url}/cancel",
            metadata={
                "productId": str(product.id),
                "customerCountry": customer_country,
            },
        )

        session_id = getattr(session, "id", None)
        session_url = getattr(session, "url", None)
        if not session_id or not session_url:
            raise CheckoutSessionError("Stripe session creation failed - missing session ID or URL")

        return CheckoutSession(id=session_id, url=session_url)

    def verify_signature(self, payload: bytes, signature: str):
        """Authenticate a webhook delivery and return the Stripe event.

        ``payload`` must be the request body exactly as received.
        """
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            raise ValidationError("Invalid webhook signature")

        logger.info("Webhook signature verified (%s %s)", event["type"], event["id"])
        return event

    def list_checkout_sessions(self, created_after: int):
        """Yield every checkout session created at or after the unix timestamp."""
        sessions = stripe.checkout.Session.list(
            api_key=self.secret_key,
            created={"gte": created_after},
            limit=100,
        )
        yield from sessions.auto_paging_iter()
