import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import click
from flask import Flask, current_app, g, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

from checkout import BASE_CURRENCY, CheckoutService, WebhookDispatcher
from config import Config, load_config
from currency import ExchangeRateService, currency_for
from errors import AppError, ExternalServiceError, ValidationError
from logging_config import setup_logging
from models import SUPPORTED_CURRENCIES, init_db
from payments import PaymentGateway
from reconcile import find_orphaned_sessions
from seed import seed_products
from stores import OrderStore, ProductStore

logger = logging.getLogger("geoprice.http")


@dataclass
class Services:
    """Everything the request handlers need, built once at startup."""

    config: Config
    products: ProductStore
    orders: OrderStore
    rates: ExchangeRateService
    gateway: PaymentGateway
    checkout: CheckoutService
    webhooks: WebhookDispatcher


def build_services(config: Config, gateway: PaymentGateway = None,
                   rates: ExchangeRateService = None) -> Services:
    session_factory = init_db(config.database_url)
    products = ProductStore(session_factory)
    orders = OrderStore(session_factory)
    if rates is None:
        rates = ExchangeRateService(config.exchange_api_key, config.exchange_api_url)
    if gateway is None:
        gateway = PaymentGateway(
            config.stripe_secret_key, config.stripe_webhook_secret, config.frontend_url,
        )
    return Services(
        config=config,
        products=products,
        orders=orders,
        rates=rates,
        gateway=gateway,
        checkout=CheckoutService(products, orders, rates, gateway),
        webhooks=WebhookDispatcher(gateway, orders),
    )


def success(data, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def failure(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _services() -> Services:
    return current_app.extensions["geoprice"]


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _country_code(value) -> str:
    if not value:
        raise ValidationError("country is required")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("country must be a valid string")
    value = value.strip()
    if len(value) != 2 or not value.isalpha():
        raise ValidationError("country must be a 2-character ISO country code")
    return value.upper()


def _localized_products(services: Services, currency: str) -> list:
    localized = []
    for product in services.products.list_all():
        price = services.rates.convert_price(product.base_price, BASE_CURRENCY, currency)
        item = product.to_dict()
        item["localizedPrice"] = float(price)
        item["currency"] = currency
        localized.append(item)
    return localized


def create_app(config: Config = None, services: Services = None) -> Flask:
    if config is None:
        config = services.config if services is not None else load_config()
    setup_logging(config.log_level)

    app = Flask(__name__)
    app.config["ENV_NAME"] = config.environment
    app.extensions["geoprice"] = services if services is not None else build_services(config)

    register_hooks(app)
    register_error_handlers(app)
    register_api(app)
    register_pages(app)
    register_commands(app)
    return app


def register_hooks(app: Flask) -> None:
    @app.before_request
    def log_request():
        g.started_at = time.perf_counter()
        logger.info("Incoming request %s %s from %s", request.method, request.path, request.remote_addr)

    @app.after_request
    def log_response(response):
        duration_ms = (time.perf_counter() - g.get("started_at", time.perf_counter())) * 1000
        logger.info(
            "Request completed %s %s -> %s in %.0fms",
            request.method, request.path, response.status_code, duration_ms,
        )
        return response


def register_error_handlers(app: Flask) -> None:
    def _context() -> str:
        return f"{request.method} {request.path} query={request.args.to_dict()}"

    @app.errorhandler(AppError)
    def handle_app_error(error):
        level = logging.ERROR if error.status_code >= 500 else logging.WARNING
        logger.log(level, "%s: %s (%s)", type(error).__name__, error.message, _context())
        return failure(error.message, error.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        logger.warning("HTTP %s: %s (%s)", error.code, error.description, _context())
        return failure(error.description or error.name, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error (%s)", _context())
        return failure("Internal server error", 500)


def register_api(app: Flask) -> None:
    @app.route("/health")
    def health():
        return success({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": current_app.config["ENV_NAME"],
        })

    @app.route("/api/products")
    def list_products():
        return success([p.to_dict() for p in _services().products.list_all()])

    @app.route("/api/rates")
    def get_rates():
        base = request.args.get("base", "").strip().upper()
        targets = request.args.get("targets", "")
        if not base or not targets:
            raise ValidationError("Base currency and target currencies are required")

        target_list = [t.strip().upper() for t in targets.split(",") if t.strip()]
        if not target_list:
            raise ValidationError("At least one target currency is required")

        rates = _services().rates.get_rates(base, target_list)
        return success({"base": base, "rates": rates})

    @app.route("/api/price", methods=["POST"])
    def localized_prices():
        country = _country_code(_json_body().get("country"))
        currency = currency_for(country)
        products = _localized_products(_services(), currency)
        return success({"country": country, "currency": currency, "products": products})

    @app.route("/api/create-checkout-session", methods=["POST"])
    def create_checkout_session():
        data = _json_body()
        product_id = data.get("productId")
        currency = data.get("currency")

        if not product_id:
            raise ValidationError("productId is required")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValidationError("productId must be a valid string")
        if not currency or not isinstance(currency, str):
            raise ValidationError("currency is required")
        country = _country_code(data.get("country"))

        return success(_services().checkout.create_checkout_session(product_id, currency, country))

    @app.route("/api/orders/<session_id>")
    def get_order(session_id):
        return success(_services().orders.get_by_session_id(session_id).to_dict())

    @app.route("/api/webhook", methods=["POST"])
    def webhook_received():
        # raw bytes: the signature covers the body exactly as sent
        payload = request.get_data()
        signature = request.headers.get("Stripe-Signature")
        _services().webhooks.handle(payload, signature)
        return jsonify({"received": True}), 200


def register_pages(app: Flask) -> None:
    @app.route("/")
    def index():
        services = _services()
        country = request.args.get("country", "US").strip().upper()
        if len(country) != 2 or not country.isalpha():
            country = "US"
        currency = currency_for(country)
        notice = None
        try:
            products = _localized_products(services, currency)
        except (ExternalServiceError, ValidationError) as exc:
            notice = f"Showing prices in {BASE_CURRENCY}: {exc.message}"
            currency = BASE_CURRENCY
            products = _localized_products(services, currency)

        checkout_currency = currency if currency in SUPPORTED_CURRENCIES else BASE_CURRENCY
        return render_template(
            "index.html",
            products=products,
            country=country,
            currency=currency,
            checkout_currency=checkout_currency,
            notice=notice,
        )

    @app.route("/success")
    def success_page():
        session_id = request.args.get("session_id")
        order = _services().orders.find_by_session_id(session_id) if session_id else None
        return render_template("success.html", order=order)

    @app.route("/cancel")
    def cancel():
        return render_template("cancel.html")


def register_commands(app: Flask) -> None:
    @app.cli.command("seed-products")
    def seed_products_command():
        """Insert the sample catalog (existing SKUs are skipped)."""
        inserted, skipped = seed_products(_services().products)
        click.echo(f"Inserted: {inserted}, Skipped: {skipped}")

    @app.cli.command("reconcile-sessions")
    @click.option("--hours", default=24.0, show_default=True,
                  help="How far back to look for checkout sessions.")
    def reconcile_sessions_command(hours):
        """List checkout sessions that have no local order."""
        services = _services()
        orphaned = find_orphaned_sessions(services.gateway, services.orders, since_hours=hours)
        for session in orphaned:
            click.echo(session["id"])
        click.echo(f"{len(orphaned)} orphaned session(s)")


if __name__ == "__main__":
    setup_logging()
    config = load_config()
    app = create_app(config)
    logger.info("Server starting on port %s (%s, %s)", config.port, config.environment, config.base_url)
    app.run(port=config.port, debug=not config.is_production)
