"""Country to currency lookup and exchange-rate conversion.

Rates come from exchangerate-api.com (``/latest/<base>``), which returns
the whole conversion table for a base currency in one call.  The table
is cached per base currency for 15 minutes.  When a refresh fails the
last table for that base is served even if it has expired; only a base
that was never fetched successfully surfaces an ``ExternalServiceError``.
"""

import logging
import threading
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import requests

from errors import ExternalServiceError, ValidationError

logger = logging.getLogger("geoprice.rates")

DEFAULT_CURRENCY = "USD"

CACHE_TTL_SECONDS = 15 * 60

REQUEST_TIMEOUT_SECONDS = 5

CENT = Decimal("0.01")

COUNTRY_TO_CURRENCY = {
    # North America
    "US": "USD",
    "CA": "CAD",
    "MX": "MXN",
    # Europe
    "GB": "GBP",
    "DE": "EUR",
    "FR": "EUR",
    "IT": "EUR",
    "ES": "EUR",
    "NL": "EUR",
    "BE": "EUR",
    "AT": "EUR",
    "PT": "EUR",
    "IE": "EUR",
    "FI": "EUR",
    "GR": "EUR",
    "CH": "CHF",
    "SE": "SEK",
    "NO": "NOK",
    "DK": "DKK",
    "PL": "PLN",
    "CZ": "CZK",
    # Asia
    "IN": "INR",
    "CN": "CNY",
    "JP": "JPY",
    "KR": "KRW",
    "SG": "SGD",
    "HK": "HKD",
    "TH": "THB",
    "MY": "MYR",
    "ID": "IDR",
    "PH": "PHP",
    "VN": "VND",
    "TW": "TWD",
    # Oceania
    "AU": "AUD",
    "NZ": "NZD",
    # Middle East
    "AE": "AED",
    "SA": "SAR",
    "IL": "ILS",
    "TR": "TRY",
    # South America
    "BR": "BRL",
    "AR": "ARS",
    "CL": "CLP",
    "CO": "COP",
    # Africa
    "ZA": "ZAR",
    "EG": "EGP",
    "NG": "NGN",
    "KE": "KES",
}


def currency_for(country_code: str) -> str:
    """ISO 3166-1 alpha-2 country code to ISO 4217 currency, USD if unknown."""
    return COUNTRY_TO_CURRENCY.get((country_code or "").strip().upper(), DEFAULT_CURRENCY)


@dataclass
class CacheEntry:
    rates: dict
    timestamp: float


class RateCache:
    """Rate tables keyed by base currency, each stamped with its fetch time."""

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock=time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, base: str):
        """Rates for ``base`` if they are younger than the TTL, else None."""
        with self._lock:
            entry = self._entries.get(base)
            if entry is None or self._clock() - entry.timestamp >= self._ttl:
                return None
            return entry.rates

    def get_stale(self, base: str):
        """Rates for ``base`` regardless of age, or None if never fetched."""
        with self._lock:
            entry = self._entries.get(base)
            return entry.rates if entry is not None else None

    def set(self, base: str, rates: dict) -> None:
        with self._lock:
            self._entries[base] = CacheEntry(rates=dict(rates), timestamp=self._clock())

    def expire(self, base: str) -> None:
        """Force the next ``get`` for ``base`` to miss, keeping it for fallback."""
        with self._lock:
            entry = self._entries.get(base)
            if entry is not None:
                entry.timestamp = float("-inf")

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count


class ExchangeRateService:
    def __init__(self, api_key: str, api_url: str, cache: RateCache = None, http=None,
                 timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.cache = cache if cache is not None else RateCache()
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self._fetch_lock = threading.Lock()

    def get_rates(self, base: str, targets=()) -> dict:
        base = base.upper()

        rates = self.cache.get(base)
        if rates is not None:
            logger.debug("Exchange rates cache hit for %s (targets=%s)", base, list(targets))
            return rates

        with self._fetch_lock:
            # another request may have refreshed the table while we waited
            rates = self.cache.get(base)
            if rates is not None:
                return rates

            logger.info("Exchange rates cache miss for %s - fetching from API", base)
            try:
                rates = self.fetch_from_provider(base)
            except (requests.RequestException, ValueError) as exc:
                logger.error("Failed to fetch exchange rates for %s: %s", base, exc)
                stale = self.cache.get_stale(base)
                if stale is not None:
                    logger.warning("Using expired cache as fallback for %s exchange rates", base)
                    return stale
                raise ExternalServiceError("Exchange Rate Service") from exc

            self.cache.set(base, rates)

        missing = [t for t in targets if t.upper() not in rates]
        if missing:
            logger.warning("Currencies missing from %s rate table: %s", base, missing)
        return rates

    def fetch_from_provider(self, base: str) -> dict:
        """Fetch the full conversion table for ``base``."""
        url = f"{self.api_url}/{self.api_key}/latest/{base}"
        logger.info("Fetching exchange rates from %s", url.replace(self.api_key, "***"))

        response = self.http.get(url, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()

        rates = data.get("conversion_rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict) or not rates:
            raise ValueError("Invalid response format from exchange rate API")

        logger.info("Fetched %d exchange rates for %s", len(rates), base)
        return rates

    def convert_price(self, amount, from_currency: str, to_currency: str) -> Decimal:
        amount = Decimal(str(amount))
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return amount

        rates = self.get_rates(from_currency, [to_currency])
        rate = rates.get(to_currency)
        if not rate:
            logger.error(
                "Exchange rate %s->%s not found (%d rates available)",
                from_currency, to_currency, len(rates),
            )
            raise ValidationError(
                f"Exchange rate not available for {to_currency}. "
                "Please check your input and try again."
            )

        return (amount * Decimal(str(rate))).quantize(CENT, rounding=ROUND_HALF_UP)
