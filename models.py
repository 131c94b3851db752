from decimal import Decimal

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, validates
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from errors import ValidationError

Base = declarative_base()

SUPPORTED_CURRENCIES = ("USD", "INR", "GBP")

ORDER_STATUSES = ("pending", "paid", "failed")

# Orders only move forward; re-applying the current status is allowed.
ALLOWED_TRANSITIONS = {
    "pending": {"pending", "paid", "failed"},
    "paid": {"paid"},
    "failed": {"failed"},
}


def _money(value) -> float:
    return float(value) if value is not None else None


def _isoformat(value):
    return value.isoformat() if value is not None else None


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)  # USD
    sku = Column(String(64), unique=True, nullable=False)
    images = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    orders = relationship("Order", back_populates="product")

    @validates("name", "description")
    def _validate_text(self, key, value):
        value = (value or "").strip()
        if not value:
            raise ValidationError(f"Product {key} is required")
        return value

    @validates("base_price")
    def _validate_base_price(self, key, value):
        if value is None:
            raise ValidationError("Base price is required")
        value = Decimal(str(value))
        if value < 0:
            raise ValidationError("Base price must be a positive number")
        return value

    @validates("sku")
    def _validate_sku(self, key, value):
        value = (value or "").strip().upper()
        if not value:
            raise ValidationError("SKU is required")
        return value

    @validates("images")
    def _validate_images(self, key, value):
        if not value or isinstance(value, str):
            raise ValidationError("Product must have at least one image")
        return list(value)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "basePrice": _money(self.base_price),
            "sku": self.sku,
            "images": list(self.images),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)  # in `currency`, at checkout time
    currency = Column(String(3), nullable=False)
    stripe_session_id = Column(String(255), unique=True, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="pending")  # pending, paid, failed
    customer_country = Column(String(2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="orders")

    @validates("amount")
    def _validate_amount(self, key, value):
        value = Decimal(str(value))
        if value < 0:
            raise ValidationError("Amount must be a positive number")
        return value

    @validates("currency")
    def _validate_currency(self, key, value):
        value = (value or "").upper()
        if value not in SUPPORTED_CURRENCIES:
            raise ValidationError(f"{value} is not a supported currency")
        return value

    @validates("status")
    def _validate_status(self, key, value):
        if value not in ORDER_STATUSES:
            raise ValidationError(f"{value} is not a valid order status")
        if self.status is not None and value not in ALLOWED_TRANSITIONS[self.status]:
            raise ValidationError(f"Order cannot move from {self.status} to {value}")
        return value

    @validates("customer_country")
    def _validate_country(self, key, value):
        value = (value or "").strip().upper()
        if not value:
            raise ValidationError("Customer country is required")
        return value

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "productId": str(self.product_id),
            "amount": _money(self.amount),
            "currency": self.currency,
            "stripeSessionId": self.stripe_session_id,
            "status": self.status,
            "customerCountry": self.customer_country,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


def init_db(database_url: str) -> sessionmaker:
    """Create the engine and tables, and return a session factory."""
    kwargs = {}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, or every session sees an empty database
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
