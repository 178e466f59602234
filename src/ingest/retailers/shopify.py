"""Shopify product extractor using the storefront's product JSON endpoint."""

import re
from typing import Any, Optional
from urllib.parse import urlsplit

from selectolax.parser import HTMLParser

from src.ingest.base import Platform, RawProductData, RawVariant
from src.ingest.fetchers.json_endpoint import JSONEndpointExtractor

# Storefront URLs look like /products/<handle> or /collections/<c>/products/<handle>
_HANDLE_PATTERN = re.compile(r"/products/([^/?#.]+)")


class ShopifyExtractor(JSONEndpointExtractor):
    """Fetch Shopify products from ``/products/<handle>.json``.

    Every Shopify storefront serves this endpoint, so no rendering is needed.
    """

    platform = Platform.SHOPIFY

    def build_endpoint_url(self, url: str) -> str:
        parts = urlsplit(url)
        match = _HANDLE_PATTERN.search(parts.path)
        if not match:
            raise self.fail(f"No product handle in {url}")
        return f"{parts.scheme}://{parts.netloc}/products/{match.group(1)}.json"

    def parse_payload(self, data: Any, url: str) -> RawProductData:
        product = data.get("product") if isinstance(data, dict) else None
        if not product:
            raise self.fail("Product not found in JSON response")

        variants = product.get("variants") or []
        first_variant = variants[0] if variants else {}
        options = product.get("options") or []
        variant_type = options[0].get("name") if options and isinstance(options[0], dict) else None

        images = [img.get("src") for img in product.get("images") or [] if img.get("src")]
        primary_image = self._extract_path(product, ["image", "src"]) or (images[0] if images else None)

        return RawProductData(
            url=url,
            platform=self.platform,
            name=product.get("title"),
            price_text=self._as_text(first_variant.get("price")),
            original_price_text=self._as_text(first_variant.get("compare_at_price")),
            sku=first_variant.get("sku") or None,
            brand=product.get("vendor") or None,
            description=self._strip_html(product.get("body_html")),
            primary_image_url=primary_image,
            images=images,
            availability_text=self._availability(product, variants),
            variants=[
                RawVariant(
                    type=variant_type or "variant",
                    value=str(v.get("title") or ""),
                    available=bool(v.get("available", True)),
                    price_text=self._as_text(v.get("price")),
                )
                for v in variants
            ],
            categories=[product["product_type"]] if product.get("product_type") else [],
            metadata={
                "shopify_id": product.get("id"),
                "handle": product.get("handle"),
                "tags": product.get("tags"),
            },
        )

    @staticmethod
    def _availability(product: dict, variants: list[dict]) -> Optional[str]:
        """Availability phrase from the product or variant ``available`` flags."""
        available = product.get("available")
        if available is None:
            flags = [v["available"] for v in variants if isinstance(v.get("available"), bool)]
            if not flags:
                return None
            available = any(flags)
        return "In stock" if available else "Out of stock"

    @staticmethod
    def _as_text(value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    @staticmethod
    def _strip_html(html: Optional[str]) -> Optional[str]:
        if not html:
            return None
        body = HTMLParser(html).body
        return body.text(separator=" ") if body is not None else None
