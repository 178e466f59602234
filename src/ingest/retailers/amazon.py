"""Amazon product extractor using headless browser."""

import re
from typing import Optional
from urllib.parse import urlsplit

from selectolax.parser import HTMLParser

from src.ingest.base import Platform, RawProductData
from src.ingest.fetchers.headless import HeadlessPageExtractor

# /dp/<ASIN>, /gp/product/<ASIN>, /product/<ASIN>
_ASIN_PATTERN = re.compile(r"/(?:dp|gp/product|product)/([A-Z0-9]{10})(?:[/?]|$)", re.IGNORECASE)

# Thumbnail renditions look like ..._AC_US40_.jpg; SL1500 is the full-size one
_THUMBNAIL_SIZE = re.compile(r"_AC_.*\.jpg")

BREADCRUMB_SEPARATORS = {"›", "â€º", ">"}


class AmazonExtractor(HeadlessPageExtractor):
    """Extract Amazon product pages (JS-rendered content)."""

    platform = Platform.AMAZON

    READY_SELECTOR = "#productTitle"

    # Ordered by priority - most common/reliable first
    PRICE_SELECTORS = [
        "#corePrice_feature_div .a-price .a-offscreen",
        "#apex_offerDisplay_desktop .a-price .a-offscreen",
        ".priceToPay .a-offscreen",
        "#price_inside_buybox",
        "#priceblock_ourprice",
        "#priceblock_dealprice",
        ".a-price:not(.a-text-price) .a-offscreen",
    ]

    # Original/strikethrough price selectors
    ORIGINAL_PRICE_SELECTORS = [
        "#corePrice_feature_div .a-text-price .a-offscreen",
        ".a-price.a-text-price .a-offscreen",
        ".basisPrice .a-offscreen",
        "#listPrice",
        "#priceblock_listprice",
    ]

    SPEC_TABLES = [
        "#productDetails_techSpec_section_1 tr",
        "#productDetails_detailBullets_sections1 tr",
    ]

    def parse(self, parser: HTMLParser, url: str) -> RawProductData:
        price_text, currency_hint = self._price(parser)
        asin = self._asin(parser, url)

        specifications: dict[str, str] = {}
        for row_selector in self.SPEC_TABLES:
            for key, value in self._table_rows(parser, row_selector, "th", "td").items():
                specifications.setdefault(key, value)

        shipping_info = {}
        delivery = self._text(parser, "#mir-layout-DELIVERY_BLOCK", "#deliveryBlockMessage")
        if delivery:
            shipping_info["delivery"] = delivery

        return RawProductData(
            url=url,
            platform=self.platform,
            name=self._text(parser, "#productTitle"),
            price_text=price_text,
            original_price_text=self._text(parser, *self.ORIGINAL_PRICE_SELECTORS),
            currency_hint=currency_hint,
            sku=asin,
            brand=self._text(parser, "#bylineInfo", "a#brand"),
            description=self._text(parser, "#feature-bullets", "#productDescription"),
            specifications=specifications,
            features=self._texts(parser, "#feature-bullets li"),
            rating_text=self._text(parser, ".a-icon-star .a-icon-alt", "#acrPopover .a-icon-alt"),
            rating_count_text=self._text(parser, "#acrCustomerReviewText"),
            primary_image_url=(
                self._attr(parser, "#landingImage", "src")
                or self._attr(parser, "#imgBlkFront", "src")
            ),
            images=self._gallery(parser),
            availability_text=self._text(parser, "#availability span", "#availability"),
            shipping_info=shipping_info,
            categories=[
                crumb
                for crumb in self._texts(parser, "#wayfinding-breadcrumbs_feature_div li")
                if crumb not in BREADCRUMB_SEPARATORS
            ],
            metadata={"asin": asin} if asin else {},
        )

    def _price(self, parser: HTMLParser) -> tuple[Optional[str], Optional[str]]:
        """Current price text and the currency symbol shown next to it."""
        symbol = self._text(
            parser, "#corePrice_feature_div .a-price-symbol", ".a-price-symbol"
        )
        whole = self._text(parser, "#corePrice_feature_div .a-price-whole", ".a-price-whole")
        if whole:
            fraction = self._text(
                parser, "#corePrice_feature_div .a-price-fraction", ".a-price-fraction"
            )
            return f"{symbol or '$'}{whole}{fraction or ''}", symbol

        return self._text(parser, *self.PRICE_SELECTORS), symbol

    def _gallery(self, parser: HTMLParser) -> list[str]:
        images = []
        for src in self._attrs(parser, ".imageThumbnail img", "src"):
            full = _THUMBNAIL_SIZE.sub("_AC_SL1500_.jpg", src)
            if full not in images:
                images.append(full)
        return images

    def _asin(self, parser: HTMLParser, url: str) -> Optional[str]:
        match = _ASIN_PATTERN.search(urlsplit(url).path)
        if match:
            return match.group(1).upper()
        return self._attr(parser, "input#ASIN", "value")
