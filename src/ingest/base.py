"""Base extractor interface and raw product data types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Platform(str, Enum):
    """E-commerce platform a product URL belongs to."""

    AMAZON = "amazon"
    SHOPIFY = "shopify"
    WOOCOMMERCE = "woocommerce"
    UNKNOWN = "unknown"


class ErrorCode(str, Enum):
    """Stable error codes surfaced to callers."""

    INVALID_URL = "INVALID_URL"
    UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"
    NO_SCRAPER = "NO_SCRAPER"
    AMAZON_SCRAPE_ERROR = "AMAZON_SCRAPE_ERROR"
    SHOPIFY_SCRAPE_ERROR = "SHOPIFY_SCRAPE_ERROR"
    WOOCOMMERCE_SCRAPE_ERROR = "WOOCOMMERCE_SCRAPE_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @classmethod
    def for_platform(cls, platform: Platform) -> "ErrorCode":
        """Extraction failure code for a platform."""
        try:
            return cls(f"{platform.value.upper()}_SCRAPE_ERROR")
        except ValueError:
            return cls.UNKNOWN_ERROR


class ScraperError(Exception):
    """Error with a stable code, safe to show to the caller."""

    def __init__(self, message: str, code: ErrorCode | str = ErrorCode.UNKNOWN_ERROR):
        self.message = message
        self.code = ErrorCode(code)
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code.value}


class ExtractionError(ScraperError):
    """A platform extractor failed to fetch or parse a product page.

    Wraps transport timeouts, missing page structure and non-2xx responses.
    ``retryable`` marks failures worth another attempt (timeouts, 5xx,
    connection errors); structural failures are not.
    """

    def __init__(
        self,
        platform: Platform,
        message: str,
        cause: Optional[BaseException] = None,
        retryable: bool = False,
    ):
        self.platform = platform
        self.cause = cause
        self.retryable = retryable
        label = platform.value.capitalize()
        super().__init__(
            f"Failed to scrape {label} product: {message}",
            ErrorCode.for_platform(platform),
        )


@dataclass
class RawVariant:
    """One purchasable option as read from the source."""

    type: str
    value: str
    available: bool = True
    price_text: Optional[str] = None


@dataclass
class RawProductData:
    """Raw, mostly unvalidated product fields from an extractor.

    Prices, ratings and availability stay as source text; the normalizer
    owns every conversion.
    """

    url: str
    platform: Platform
    name: Optional[str] = None
    price_text: Optional[str] = None
    original_price_text: Optional[str] = None
    currency_hint: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    specifications: dict[str, Any] = field(default_factory=dict)
    features: list[str] = field(default_factory=list)
    rating_text: Optional[str] = None
    rating_count_text: Optional[str] = None
    primary_image_url: Optional[str] = None
    images: list[str] = field(default_factory=list)
    videos: list[str] = field(default_factory=list)
    availability_text: Optional[str] = None
    shipping_info: dict[str, Any] = field(default_factory=dict)
    variants: list[RawVariant] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseExtractor(ABC):
    """Abstract base class for platform extractors."""

    platform: Platform = Platform.UNKNOWN

    @abstractmethod
    async def extract(self, url: str) -> RawProductData:
        """
        Fetch and parse a product page.

        Args:
            url: Normalized product URL

        Returns:
            RawProductData with source-level field values

        Raises:
            ExtractionError: If the page can't be fetched or parsed
        """
        pass

    async def close(self) -> None:
        """Release long-lived resources held by the extractor."""
        return None

    def fail(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        retryable: bool = False,
    ) -> ExtractionError:
        """Build an ExtractionError tagged with this extractor's platform."""
        return ExtractionError(self.platform, message, cause=cause, retryable=retryable)
