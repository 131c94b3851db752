import logging
import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

# Load env vars
load_dotenv()

logger = logging.getLogger("geoprice.config")

REQUIRED_ENV_VARS = (
    "DATABASE_URL",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "EXCHANGE_API_KEY",
    "BASE_URL",
    "FRONTEND_URL",
)

DEFAULT_EXCHANGE_API_URL = "https://v6.exchangerate-api.com/v6"


class ConfigError(Exception):
    """Raised when the environment does not describe a runnable app."""


@dataclass(frozen=True)
class Config:
    database_url: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    exchange_api_key: str
    base_url: str
    frontend_url: str
    port: int = 5000
    environment: str = "development"
    log_level: str = "INFO"
    exchange_api_url: str = DEFAULT_EXCHANGE_API_URL

    @classmethod
    def from_env(cls, environ=None) -> "Config":
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_ENV_VARS if not env.get(name)]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        port = env.get("PORT", "5000")
        try:
            port = int(port)
        except ValueError:
            raise ConfigError(f"PORT must be an integer, got {port!r}")

        return cls(
            database_url=env["DATABASE_URL"],
            stripe_secret_key=env["STRIPE_SECRET_KEY"],
            stripe_webhook_secret=env["STRIPE_WEBHOOK_SECRET"],
            exchange_api_key=env["EXCHANGE_API_KEY"],
            base_url=env["BASE_URL"].rstrip("/"),
            # Hosting dashboards like to keep the quotes from .env files
            frontend_url=env["FRONTEND_URL"].strip("\"'").rstrip("/"),
            port=port,
            environment=env.get("APP_ENV", "development"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            exchange_api_url=env.get("EXCHANGE_API_URL", DEFAULT_EXCHANGE_API_URL).rstrip("/"),
        )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def load_config() -> Config:
    """Read the configuration at startup; exit the process if it is incomplete."""
    try:
        config = Config.from_env()
    except ConfigError as exc:
        logger.critical("%s. Check your .env file.", exc)
        sys.exit(1)
    logger.info("Environment variables validated (%s)", config.environment)
    return config
