"""Tests for the Amazon, WooCommerce and Shopify extractors against stored pages."""

import json
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from src.ingest.base import ErrorCode, ExtractionError, Platform
from src.ingest.retailers.amazon import AmazonExtractor
from src.ingest.retailers.shopify import ShopifyExtractor
from src.ingest.retailers.woocommerce import WooCommerceExtractor
from src.normalize.processor import ProductNormalizer, StockStatus

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class TestAmazonExtractor:
    URL = "https://www.amazon.com/dp/B0TESTASIN"

    def test_parses_product_page(self):
        raw = AmazonExtractor().parse_html(read_fixture("amazon_product.html"), self.URL)

        assert raw.platform == Platform.AMAZON
        assert "Acme Studio" in raw.name
        assert raw.price_text == "$1,299.99"
        assert raw.original_price_text == "$1,499.99"
        assert raw.currency_hint == "$"
        assert raw.sku == "B0TESTASIN"
        assert raw.metadata == {"asin": "B0TESTASIN"}
        assert raw.rating_text == "4.5 out of 5 stars"
        assert raw.rating_count_text == "2,345 ratings"
        assert raw.features == ["40-hour battery life", "Adaptive noise cancelling"]
        assert raw.categories == ["Electronics", "Headphones"]
        assert raw.shipping_info == {"delivery": "FREE delivery Tuesday, October 21"}
        assert raw.primary_image_url == "https://m.media-amazon.com/images/I/81Main._AC_SL1500_.jpg"

    def test_gallery_uses_full_size_images_without_duplicates(self):
        raw = AmazonExtractor().parse_html(read_fixture("amazon_product.html"), self.URL)

        assert raw.images == [
            "https://m.media-amazon.com/images/I/81Main._AC_SL1500_.jpg",
            "https://m.media-amazon.com/images/I/71Side._AC_SL1500_.jpg",
        ]

    def test_first_spec_table_wins_on_duplicate_keys(self):
        raw = AmazonExtractor().parse_html(read_fixture("amazon_product.html"), self.URL)

        assert raw.specifications == {
            "Connectivity": "Bluetooth 5.3",
            "Weight": "250 grams",
            "Model Number": "ACM-STUDIO-2",
        }

    def test_asin_falls_back_to_hidden_input(self):
        raw = AmazonExtractor().parse_html(
            read_fixture("amazon_product.html"),
            "https://www.amazon.com/Acme-Studio-Headphones/s?k=headphones",
        )
        assert raw.sku == "B0TESTASIN"

    def test_normalized_product(self):
        raw = AmazonExtractor().parse_html(read_fixture("amazon_product.html"), self.URL)
        product = ProductNormalizer(default_currency="USD").normalize(raw)

        assert product.name == "Acme Studio Wireless Headphones, Noise Cancelling"
        assert product.price_current == Decimal("1299.99")
        assert product.price_original == Decimal("1499.99")
        assert product.currency == "USD"
        assert product.rating_average == 4.5
        assert product.rating_count == 2345
        assert product.stock_status == StockStatus.LIMITED
        assert product.brand == "Visit the Acme Store"

    def test_page_without_title_fails(self):
        with pytest.raises(ExtractionError) as exc_info:
            AmazonExtractor().parse_html("<html><body><div id='dp'></div></body></html>", self.URL)

        assert exc_info.value.code == ErrorCode.AMAZON_SCRAPE_ERROR
        assert exc_info.value.retryable is False
        assert "Failed to scrape Amazon product" in exc_info.value.message


class TestWooCommerceExtractor:
    URL = "https://shop.example.com/product/ceramic-pour-over-mug/"

    def test_parses_product_page(self):
        raw = WooCommerceExtractor().parse_html(read_fixture("woocommerce_product.html"), self.URL)

        assert raw.platform == Platform.WOOCOMMERCE
        assert raw.name == "Ceramic Pour-Over Mug"
        assert raw.price_text == "£24.00"
        assert raw.original_price_text == "£30.00"
        assert raw.currency_hint == "£"
        assert raw.sku == "MUG-350"
        assert raw.availability_text == "12 in stock"
        assert raw.features == ["Holds 350ml", "Dishwasher safe"]
        assert raw.specifications == {"Weight": "0.4 kg", "Colour": "Slate"}
        assert raw.categories == ["Kitchen", "Mugs"]
        assert raw.images == [
            "https://shop.example.com/wp-content/uploads/mug-front.jpg",
            "https://shop.example.com/wp-content/uploads/mug-side.jpg",
        ]
        assert raw.primary_image_url == raw.images[0]

    def test_normalized_product(self):
        raw = WooCommerceExtractor().parse_html(read_fixture("woocommerce_product.html"), self.URL)
        product = ProductNormalizer(default_currency="USD").normalize(raw)

        assert product.price_current == Decimal("24.00")
        assert product.price_original == Decimal("30.00")
        assert product.currency == "GBP"
        assert product.rating_average == 4.5
        assert product.rating_count == 12
        assert product.stock_status == StockStatus.IN_STOCK


class TestShopifyExtractor:
    URL = "https://cool-hats.myshopify.com/collections/winter/products/merino-wool-beanie?variant=41000000001"

    def _extractor(self, handler) -> ShopifyExtractor:
        return ShopifyExtractor(transport=httpx.MockTransport(handler))

    def test_builds_json_endpoint_from_product_url(self):
        endpoint = ShopifyExtractor().build_endpoint_url(self.URL)
        assert endpoint == "https://cool-hats.myshopify.com/products/merino-wool-beanie.json"

    def test_url_without_product_handle_fails(self):
        with pytest.raises(ExtractionError) as exc_info:
            ShopifyExtractor().build_endpoint_url("https://cool-hats.myshopify.com/collections/all")

        assert exc_info.value.code == ErrorCode.SHOPIFY_SCRAPE_ERROR

    @pytest.mark.asyncio
    async def test_extracts_product_json(self):
        payload = json.loads(read_fixture("shopify_product.json"))
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json=payload)

        extractor = self._extractor(handler)
        try:
            raw = await extractor.extract(self.URL)
        finally:
            await extractor.close()

        assert requested == ["https://cool-hats.myshopify.com/products/merino-wool-beanie.json"]
        assert raw.url == self.URL
        assert raw.name == "Merino Wool Beanie"
        assert raw.price_text == "29.00"
        assert raw.original_price_text == "35.00"
        assert raw.sku == "BEANIE-CH"
        assert raw.brand == "Northwind Outfitters"
        assert raw.availability_text == "In stock"
        assert raw.categories == ["Hats"]
        assert raw.primary_image_url == "https://cdn.shopify.com/s/files/1/beanie-charcoal.jpg"
        assert [(v.type, v.value, v.available) for v in raw.variants] == [
            ("Color", "Charcoal", True),
            ("Color", "Navy", False),
        ]
        assert raw.metadata["handle"] == "merino-wool-beanie"

        product = ProductNormalizer(default_currency="USD").normalize(raw)
        assert product.price_current == Decimal("29.00")
        assert product.description == "Soft merino knit."
        assert product.variants[1].price == Decimal("31.50")
        assert product.stock_status == StockStatus.IN_STOCK

    @pytest.mark.asyncio
    async def test_all_variants_sold_out(self):
        payload = json.loads(read_fixture("shopify_product.json"))
        for variant in payload["product"]["variants"]:
            variant["available"] = False

        extractor = self._extractor(lambda request: httpx.Response(200, json=payload))
        try:
            raw = await extractor.extract(self.URL)
        finally:
            await extractor.close()

        assert raw.availability_text == "Out of stock"

    @pytest.mark.asyncio
    async def test_not_found_is_not_retryable(self):
        extractor = self._extractor(lambda request: httpx.Response(404, text="Not Found"))
        try:
            with pytest.raises(ExtractionError) as exc_info:
                await extractor.extract(self.URL)
        finally:
            await extractor.close()

        assert exc_info.value.code == ErrorCode.SHOPIFY_SCRAPE_ERROR
        assert exc_info.value.retryable is False
        assert "404" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self):
        extractor = self._extractor(lambda request: httpx.Response(503, text="Unavailable"))
        try:
            with pytest.raises(ExtractionError) as exc_info:
                await extractor.extract(self.URL)
        finally:
            await extractor.close()

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        extractor = self._extractor(handler)
        try:
            with pytest.raises(ExtractionError) as exc_info:
                await extractor.extract(self.URL)
        finally:
            await extractor.close()

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_payload_without_product_fails(self):
        extractor = self._extractor(lambda request: httpx.Response(200, json={"errors": "Not Found"}))
        try:
            with pytest.raises(ExtractionError) as exc_info:
                await extractor.extract(self.URL)
        finally:
            await extractor.close()

        assert "Product not found" in exc_info.value.message
        assert exc_info.value.retryable is False
