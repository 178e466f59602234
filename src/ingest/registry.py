"""Extractor registry mapping platforms to their extractor implementation."""

import logging
from typing import Iterable, Optional

from src.ingest.base import BaseExtractor, Platform

logger = logging.getLogger(__name__)


class ExtractorRegistry:
    """Registry holding exactly one extractor per platform.

    Built once at process start and treated as read-only afterwards, so it
    is shared across concurrent scrapes without locking.
    """

    def __init__(self, extractors: Iterable[BaseExtractor] = ()):
        self._extractors: dict[Platform, BaseExtractor] = {}
        for extractor in extractors:
            self.register(extractor)

    def register(self, extractor: BaseExtractor) -> None:
        """
        Register an extractor under its platform.

        Args:
            extractor: Extractor instance; replaces any previous one for the platform
        """
        if extractor.platform == Platform.UNKNOWN:
            raise ValueError(f"{type(extractor).__name__} does not declare a platform")

        if extractor.platform in self._extractors:
            logger.warning(f"Replacing extractor for platform: {extractor.platform.value}")

        self._extractors[extractor.platform] = extractor
        logger.info(
            f"Registered {type(extractor).__name__} for platform: {extractor.platform.value}"
        )

    def resolve(self, platform: Platform) -> Optional[BaseExtractor]:
        """Extractor for ``platform``, or None for unknown/unregistered platforms."""
        if platform == Platform.UNKNOWN:
            return None
        return self._extractors.get(platform)

    def platforms(self) -> list[Platform]:
        """List all registered platforms."""
        return list(self._extractors.keys())

    async def close(self) -> None:
        """Close all extractor instances."""
        for platform, extractor in self._extractors.items():
            try:
                await extractor.close()
            except Exception as e:
                logger.error(f"Error closing extractor for {platform.value}: {e}")


def build_default_registry() -> ExtractorRegistry:
    """Registry with the built-in Amazon, Shopify and WooCommerce extractors."""
    from src.ingest.retailers.amazon import AmazonExtractor
    from src.ingest.retailers.shopify import ShopifyExtractor
    from src.ingest.retailers.woocommerce import WooCommerceExtractor

    return ExtractorRegistry([
        AmazonExtractor(),
        ShopifyExtractor(),
        WooCommerceExtractor(),
    ])
