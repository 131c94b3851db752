import logging
from decimal import ROUND_HALF_UP, Decimal

from errors import ValidationError
from models import SUPPORTED_CURRENCIES

logger = logging.getLogger("geoprice.checkout")
webhook_logger = logging.getLogger("geoprice.webhook")

BASE_CURRENCY = "USD"

CHECKOUT_COMPLETED = "checkout.session.completed"


def to_smallest_unit(amount) -> int:
    """Decimal amount to the provider's integer subunit (cents, paise, pence).

    Every supported currency has two decimal places.
    """
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CheckoutService:
    def __init__(self, products, orders, rates, gateway):
        self.products = products
        self.orders = orders
        self.rates = rates
        self.gateway = gateway

    def create_checkout_session(self, product_id, currency: str, country: str) -> dict:
        currency = (currency or "").upper()
        if currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(f"Currency must be one of: {', '.join(SUPPORTED_CURRENCIES)}")

        product = self.products.get_by_id(product_id)
        amount = self.rates.convert_price(product.base_price, BASE_CURRENCY, currency)

        session = self.gateway.create_checkout_session(
            product, to_smallest_unit(amount), currency, country.upper(),
        )

        # A session abandoned by the customer leaves this order pending for good.
        order = self.orders.create_pending(
            product_id=product.id,
            amount=amount,
            currency=currency,
            stripe_session_id=session.id,
            customer_country=country,
        )

        logger.info(
            "Checkout session %s created for product %s: %s %s (order %s)",
            session.id, product.id, amount, currency, order.id,
        )
        return {"sessionId": session.id, "sessionUrl": session.url}


class WebhookDispatcher:
    """Routes verified payment events to order updates.

    Only ``checkout.session.completed`` changes state (pending -> paid).
    Every other event type is acknowledged and ignored so the provider
    does not keep redelivering it.
    """

    def __init__(self, gateway, orders):
        self.gateway = gateway
        self.orders = orders
        self.handlers = {CHECKOUT_COMPLETED: self.handle_checkout_completed}

    def handle(self, payload: bytes, signature: str):
        if not signature:
            raise ValidationError("Missing stripe-signature header")

        event = self.gateway.verify_signature(payload, signature)
        self.dispatch(event)
        return event

    def dispatch(self, event) -> None:
        event_type = event["type"]
        handler = self.handlers.get(event_type)
        if handler is None:
            webhook_logger.info("Unhandled webhook event type %s", event_type)
            return
        handler(event["data"]["object"])

    def handle_checkout_completed(self, session) -> None:
        session_id = session["id"]
        order = self.orders.mark_paid(session_id)
        if order is None:
            webhook_logger.warning("No order found for completed checkout session %s", session_id)
            return
        webhook_logger.info("Order %s paid via checkout session %s", order.id, session_id)
