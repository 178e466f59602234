"""Normalize raw extractor fields into canonical product records.

Every extractor's output goes through the same functions here, so prices,
ratings and stock status have one encoding regardless of source platform.
The parsers never raise on bad input: unparseable text becomes None.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from src.config import settings
from src.ingest.base import ExtractionError, Platform, RawProductData

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_AMOUNT = re.compile(r"\d+(?:\.\d+)?|\.\d+")
_OUT_OF = re.compile(r"(\d+(?:\.\d+)?)\s*out of\s*(\d+)", re.IGNORECASE)
_DECIMAL = re.compile(r"\d+(?:\.\d+)?")
_COUNT = re.compile(r"\d+(?:,\d+)*")
_RANGE_SEPARATORS = (" - ", " – ", " — ")

# Longest symbols first so "US$" wins over "$"
CURRENCY_SYMBOLS = [
    ("US$", "USD"),
    ("CA$", "CAD"),
    ("C$", "CAD"),
    ("A$", "AUD"),
    ("AU$", "AUD"),
    ("R$", "BRL"),
    ("£", "GBP"),
    ("€", "EUR"),
    ("¥", "JPY"),
    ("₹", "INR"),
    ("₩", "KRW"),
    ("$", "USD"),
]
ISO_CODES = {code for _, code in CURRENCY_SYMBOLS} | {"CHF", "SEK", "NOK", "DKK", "MXN", "PLN"}

RATING_SCALE = 5.0


class StockStatus(str, Enum):
    """Canonical availability values."""

    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    LIMITED = "limited"
    UNKNOWN = "unknown"


@dataclass
class ProductVariant:
    """Canonical purchasable option."""

    type: str
    value: str
    available: bool
    price: Optional[Decimal] = None


@dataclass
class CanonicalProduct:
    """Canonical normalized product data."""

    url: str
    platform: Platform
    name: str
    price_current: Optional[Decimal]
    price_original: Optional[Decimal]
    currency: str
    stock_status: StockStatus
    sku: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    specifications: dict[str, Any] = field(default_factory=dict)
    features: list[str] = field(default_factory=list)
    rating_average: Optional[float] = None
    rating_count: Optional[int] = None
    primary_image_url: Optional[str] = None
    images: list[str] = field(default_factory=list)
    videos: list[str] = field(default_factory=list)
    shipping_info: dict[str, Any] = field(default_factory=dict)
    variants: list[ProductVariant] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (Decimals as floats, enums as values)."""
        data = asdict(self)
        data["platform"] = self.platform.value
        data["stock_status"] = self.stock_status.value
        data["price_current"] = _to_float(self.price_current)
        data["price_original"] = _to_float(self.price_original)
        for variant in data["variants"]:
            variant["price"] = _to_float(variant["price"])
        return data


class NormalizationError(ExtractionError):
    """Raised when raw fields can't form a canonical record."""

    pass


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def parse_price(text: Optional[str]) -> Optional[Decimal]:
    """
    Parse a price amount from display text.

    "$1,234.56" -> Decimal("1234.56"); ranges keep the lower bound.
    Returns None for empty or unparseable input.
    """
    if not text:
        return None

    cleaned = str(text)
    for separator in _RANGE_SEPARATORS:
        if separator in cleaned:
            cleaned = cleaned.split(separator)[0]

    # Drop symbols, letters, thousands separators and spaces; keep digits and dots
    cleaned = re.sub(r"[^\d.]", "", cleaned.replace(",", ""))

    match = _AMOUNT.search(cleaned)
    if not match:
        return None

    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def parse_rating(text: Optional[str]) -> Optional[float]:
    """
    Parse a star rating on a 5-point scale.

    Accepts "4.5 out of 5 stars" (takes the first number) or a bare
    decimal no greater than 5. Anything else is None.
    """
    if not text:
        return None

    match = _OUT_OF.search(text)
    if match:
        return float(match.group(1))

    match = _DECIMAL.search(text)
    if match:
        rating = float(match.group(0))
        return rating if rating <= RATING_SCALE else None

    return None


def parse_rating_count(text: Optional[str]) -> Optional[int]:
    """First run of digits, thousands separators removed: "1,234 ratings" -> 1234."""
    if not text:
        return None

    match = _COUNT.search(text)
    if not match:
        return None
    return int(match.group(0).replace(",", ""))


def clean_text(text: Optional[str], required: bool = False) -> Optional[str]:
    """
    Trim and collapse internal whitespace.

    Missing or blank input becomes "" for required fields, None otherwise.
    """
    if text is None:
        return "" if required else None

    cleaned = _WHITESPACE.sub(" ", str(text)).strip()
    if not cleaned and not required:
        return None
    return cleaned


def classify_stock_status(text: Optional[str]) -> StockStatus:
    """Map a free-text availability phrase to a StockStatus."""
    if not text:
        return StockStatus.UNKNOWN

    lowered = text.lower()

    if "out of stock" in lowered:
        return StockStatus.OUT_OF_STOCK
    # "Only 3 left in stock" is limited, so check before "in stock"
    if "only" in lowered and "left" in lowered:
        return StockStatus.LIMITED
    if "in stock" in lowered:
        return StockStatus.IN_STOCK
    return StockStatus.UNKNOWN


def detect_currency(*texts: Optional[str], default: Optional[str] = None) -> str:
    """ISO currency code from symbols or codes in price text, else ``default``."""
    fallback = (default or settings.default_currency).upper()

    for text in texts:
        if not text:
            continue
        upper = str(text).upper()
        for token in re.findall(r"[A-Z]{3}", upper):
            if token in ISO_CODES:
                return token
        for symbol, code in CURRENCY_SYMBOLS:
            if symbol in upper:
                return code

    return fallback


class ProductNormalizer:
    """Normalize raw extractor output into CanonicalProduct records."""

    def __init__(self, default_currency: Optional[str] = None):
        self.default_currency = default_currency or settings.default_currency

    def normalize(self, raw: RawProductData) -> CanonicalProduct:
        """
        Normalize raw product data.

        Args:
            raw: Raw product data from an extractor

        Returns:
            CanonicalProduct

        Raises:
            NormalizationError: If the product has no usable name
        """
        name = clean_text(raw.name, required=True)
        if not name:
            raise NormalizationError(raw.platform, f"No product name found for {raw.url}")

        rating = parse_rating(raw.rating_text)
        if rating is not None and not 0 <= rating <= RATING_SCALE:
            logger.warning(f"Discarding out-of-range rating {rating} for {raw.url}")
            rating = None

        return CanonicalProduct(
            url=raw.url,
            platform=raw.platform,
            name=name,
            price_current=parse_price(raw.price_text),
            price_original=parse_price(raw.original_price_text),
            currency=detect_currency(
                raw.currency_hint, raw.price_text, raw.original_price_text,
                default=self.default_currency,
            ),
            stock_status=classify_stock_status(raw.availability_text),
            sku=clean_text(raw.sku),
            brand=clean_text(raw.brand),
            description=clean_text(raw.description),
            specifications={
                clean_text(key, required=True): clean_text(value) if isinstance(value, str) else value
                for key, value in raw.specifications.items()
            },
            features=[f for f in (clean_text(item) for item in raw.features) if f],
            rating_average=rating,
            rating_count=parse_rating_count(raw.rating_count_text),
            primary_image_url=clean_text(raw.primary_image_url),
            images=self._unique(raw.images),
            videos=self._unique(raw.videos),
            shipping_info=dict(raw.shipping_info),
            variants=[
                ProductVariant(
                    type=clean_text(v.type, required=True) or "variant",
                    value=clean_text(v.value, required=True),
                    available=v.available,
                    price=parse_price(v.price_text),
                )
                for v in raw.variants
            ],
            categories=[c for c in (clean_text(item) for item in raw.categories) if c],
            metadata=dict(raw.metadata),
        )

    @staticmethod
    def _unique(urls: list[str]) -> list[str]:
        """Drop blanks and duplicates, keeping first-seen order."""
        seen: list[str] = []
        for url in urls:
            url = (url or "").strip()
            if url and url not in seen:
                seen.append(url)
        return seen
