"""Tests for the product catalog and order persistence."""

from decimal import Decimal

import pytest

from conftest import product_data
from errors import NotFoundError, ValidationError


class TestProductStore:
    def test_create_normalizes_fields(self, products) -> None:
        product = products.create(product_data(sku="  wbh-001 ", name=" Headphones "))

        assert product.id is not None
        assert product.sku == "WBH-001"
        assert product.name == "Headphones"
        assert product.base_price == Decimal("100.00")

    def test_list_all_returns_every_product_in_creation_order(self, products) -> None:
        for sku in ("B-2", "A-1", "C-3"):
            products.create(product_data(sku=sku))

        assert [p.sku for p in products.list_all()] == ["B-2", "A-1", "C-3"]

    def test_list_all_empty(self, products) -> None:
        assert products.list_all() == []

    def test_get_by_id_accepts_string_ids(self, products) -> None:
        created = products.create(product_data())

        assert products.get_by_id(str(created.id)).sku == "SFW-002"

    @pytest.mark.parametrize("product_id", ["999", "not-an-id", "", None])
    def test_get_by_id_missing(self, products, product_id) -> None:
        with pytest.raises(NotFoundError, match="Product not found"):
            products.get_by_id(product_id)

    def test_duplicate_sku_rejected(self, products) -> None:
        products.create(product_data(sku="SFW-002"))

        with pytest.raises(ValidationError, match="SFW-002"):
            products.create(product_data(sku="sfw-002", name="Other"))
        assert len(products.list_all()) == 1

    @pytest.mark.parametrize("images", [[], None])
    def test_images_required(self, products, images) -> None:
        with pytest.raises(ValidationError, match="at least one image"):
            products.create(product_data(images=images))

    def test_negative_price_rejected(self, products) -> None:
        with pytest.raises(ValidationError, match="positive"):
            products.create(product_data(base_price="-1"))

    def test_find_by_sku(self, products) -> None:
        products.create(product_data())

        assert products.find_by_sku("sfw-002") is not None
        assert products.find_by_sku("NOPE") is None

    def test_to_dict_exposes_opaque_string_id(self, products) -> None:
        data = products.create(product_data()).to_dict()

        assert data["id"].isdigit()
        assert data["basePrice"] == 100.0
        assert data["images"] == ["https://example.com/watch.jpg"]


@pytest.fixture
def product(products):
    return products.create(product_data())


class TestOrderStore:
    def _pending(self, orders, product, session_id="cs_test_1"):
        return orders.create_pending(
            product_id=product.id,
            amount=Decimal("8300.00"),
            currency="inr",
            stripe_session_id=session_id,
            customer_country="in",
        )

    def test_create_pending(self, orders, product) -> None:
        order = self._pending(orders, product)

        assert order.status == "pending"
        assert order.currency == "INR"
        assert order.customer_country == "IN"
        assert order.amount == Decimal("8300.00")
        assert orders.find_by_session_id("cs_test_1").id == order.id

    def test_unsupported_currency_rejected(self, orders, product) -> None:
        with pytest.raises(ValidationError, match="EUR"):
            orders.create_pending(product.id, 10, "EUR", "cs_test_1", "DE")

    def test_get_by_session_id_missing(self, orders) -> None:
        with pytest.raises(NotFoundError, match="Order not found"):
            orders.get_by_session_id("cs_missing")

    def test_mark_paid_only_touches_matching_order(self, orders, product) -> None:
        self._pending(orders, product, "cs_test_1")
        self._pending(orders, product, "cs_test_2")

        paid = orders.mark_paid("cs_test_2")

        assert paid.status == "paid"
        assert orders.find_by_session_id("cs_test_1").status == "pending"
        assert orders.find_by_session_id("cs_test_2").status == "paid"

    def test_mark_paid_twice_is_harmless(self, orders, product) -> None:
        self._pending(orders, product)
        orders.mark_paid("cs_test_1")

        assert orders.mark_paid("cs_test_1").status == "paid"

    def test_mark_paid_unknown_session(self, orders) -> None:
        assert orders.mark_paid("cs_unknown") is None

    def test_paid_order_never_moves_back(self, orders, product) -> None:
        order = self._pending(orders, product)
        orders.mark_paid("cs_test_1")

        with pytest.raises(ValidationError, match="paid to pending"):
            orders.update_status(order.id, "pending")
        assert orders.find_by_session_id("cs_test_1").status == "paid"

    def test_unknown_status_rejected(self, orders, product) -> None:
        order = self._pending(orders, product)

        with pytest.raises(ValidationError, match="not a valid order status"):
            orders.update_status(order.id, "refunded")

    def test_update_status_missing_order(self, orders) -> None:
        with pytest.raises(NotFoundError):
            orders.update_status(42, "paid")

    def test_session_ids(self, orders, product) -> None:
        self._pending(orders, product, "cs_a")
        self._pending(orders, product, "cs_b")

        assert orders.session_ids() == {"cs_a", "cs_b"}
