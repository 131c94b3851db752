import logging

from sqlalchemy.exc import IntegrityError

from errors import NotFoundError, ValidationError
from models import Order, Product

logger = logging.getLogger("geoprice.stores")


def _parse_id(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class ProductStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def list_all(self) -> list:
        with self._session_factory() as db:
            return db.query(Product).order_by(Product.id).all()

    def get_by_id(self, product_id) -> Product:
        pk = _parse_id(product_id)
        product = None
        if pk is not None:
            with self._session_factory() as db:
                product = db.get(Product, pk)
        if product is None:
            raise NotFoundError("Product")
        return product

    def find_by_sku(self, sku: str):
        with self._session_factory() as db:
            return db.query(Product).filter_by(sku=sku.strip().upper()).first()

    def create(self, data: dict) -> Product:
        product = Product(
            name=data.get("name"),
            description=data.get("description"),
            base_price=data.get("base_price"),
            sku=data.get("sku"),
            images=data.get("images"),
        )
        sku = product.sku
        with self._session_factory() as db:
            db.add(product)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ValidationError(f"Product with SKU {sku} already exists")
            db.refresh(product)

        logger.info("Product created: %s (SKU: %s)", product.name, product.sku)
        return product


class OrderStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def create_pending(self, product_id, amount, currency, stripe_session_id, customer_country) -> Order:
        order = Order(
            product_id=_parse_id(product_id),
            amount=amount,
            currency=currency,
            stripe_session_id=stripe_session_id,
            status="pending",
            customer_country=customer_country,
        )
        with self._session_factory() as db:
            db.add(order)
            db.commit()
            db.refresh(order)

        logger.info(
            "Pending order %s created for product %s (session %s)",
            order.id, order.product_id, stripe_session_id,
        )
        return order

    def find_by_session_id(self, stripe_session_id: str):
        with self._session_factory() as db:
            return db.query(Order).filter_by(stripe_session_id=stripe_session_id).first()

    def get_by_session_id(self, stripe_session_id: str) -> Order:
        order = self.find_by_session_id(stripe_session_id)
        if order is None:
            raise NotFoundError("Order")
        return order

    def update_status(self, order_id, status: str) -> Order:
        with self._session_factory() as db:
            order = db.get(Order, _parse_id(order_id))
            if order is None:
                raise NotFoundError("Order")
            order.status = status
            db.commit()
            db.refresh(order)
            return order

    def mark_paid(self, stripe_session_id: str):
        """Mark the order for a checkout session as paid.

        Returns the updated order, or None when no order matches the session.
        """
        with self._session_factory() as db:
            order = db.query(Order).filter_by(stripe_session_id=stripe_session_id).first()
            if order is None:
                return None
            order.status = "paid"
            db.commit()
            db.refresh(order)

        logger.info("Order %s marked as paid (session %s)", order.id, stripe_session_id)
        return order

    def session_ids(self) -> set:
        with self._session_factory() as db:
            return {sid for (sid,) in db.query(Order.stripe_session_id)}
