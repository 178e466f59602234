"""Tests for the extractor registry."""

import pytest

from src.ingest.base import BaseExtractor, Platform, RawProductData
from src.ingest.registry import ExtractorRegistry, build_default_registry
from src.ingest.retailers.amazon import AmazonExtractor
from src.ingest.retailers.shopify import ShopifyExtractor
from src.ingest.retailers.woocommerce import WooCommerceExtractor


class StubExtractor(BaseExtractor):
    def __init__(self, platform: Platform):
        self.platform = platform
        self.closed = False

    async def extract(self, url: str) -> RawProductData:
        return RawProductData(url=url, platform=self.platform, name="Stub")

    async def close(self) -> None:
        self.closed = True


def test_default_registry_covers_supported_platforms():
    registry = build_default_registry()

    assert set(registry.platforms()) == {Platform.AMAZON, Platform.SHOPIFY, Platform.WOOCOMMERCE}
    assert isinstance(registry.resolve(Platform.AMAZON), AmazonExtractor)
    assert isinstance(registry.resolve(Platform.SHOPIFY), ShopifyExtractor)
    assert isinstance(registry.resolve(Platform.WOOCOMMERCE), WooCommerceExtractor)


def test_unknown_platform_resolves_to_none():
    registry = build_default_registry()
    assert registry.resolve(Platform.UNKNOWN) is None


def test_unregistered_platform_resolves_to_none():
    registry = ExtractorRegistry([StubExtractor(Platform.AMAZON)])
    assert registry.resolve(Platform.SHOPIFY) is None


def test_register_replaces_existing_extractor():
    first = StubExtractor(Platform.AMAZON)
    second = StubExtractor(Platform.AMAZON)
    registry = ExtractorRegistry([first])

    registry.register(second)

    assert registry.resolve(Platform.AMAZON) is second
    assert registry.platforms() == [Platform.AMAZON]


def test_register_rejects_unknown_platform():
    with pytest.raises(ValueError):
        ExtractorRegistry([StubExtractor(Platform.UNKNOWN)])


@pytest.mark.asyncio
async def test_close_closes_every_extractor():
    extractors = [StubExtractor(Platform.AMAZON), StubExtractor(Platform.SHOPIFY)]
    registry = ExtractorRegistry(extractors)

    await registry.close()

    assert all(extractor.closed for extractor in extractors)
