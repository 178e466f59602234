"""WooCommerce product extractor using headless browser."""

from selectolax.parser import HTMLParser

from src.ingest.base import Platform, RawProductData
from src.ingest.fetchers.headless import HeadlessPageExtractor


class WooCommerceExtractor(HeadlessPageExtractor):
    """Extract WooCommerce storefront product pages.

    WooCommerce runs on arbitrary domains, so these pages are only reached
    when an operator maps the store's host in ``custom_platform_hosts``.
    """

    platform = Platform.WOOCOMMERCE

    READY_SELECTOR = ".product"

    TITLE_SELECTORS = [
        ".product_title",
        "h1.entry-title",
        ".woocommerce-loop-product__title",
    ]

    # Sale price sits in <ins>, regular price in <del>
    PRICE_SELECTORS = [
        ".summary .price ins .amount",
        ".price ins .amount",
        ".summary .price .amount",
        ".price .amount",
        ".woocommerce-Price-amount",
    ]

    ORIGINAL_PRICE_SELECTORS = [
        ".summary .price del .amount",
        ".price del .amount",
    ]

    def parse(self, parser: HTMLParser, url: str) -> RawProductData:
        gallery = self._attrs(parser, ".woocommerce-product-gallery__image img", "src")

        return RawProductData(
            url=url,
            platform=self.platform,
            name=self._text(parser, *self.TITLE_SELECTORS),
            price_text=self._text(parser, *self.PRICE_SELECTORS),
            original_price_text=self._text(parser, *self.ORIGINAL_PRICE_SELECTORS),
            currency_hint=self._text(parser, ".woocommerce-Price-currencySymbol"),
            sku=self._text(parser, ".sku"),
            description=self._text(
                parser,
                ".woocommerce-product-details__short-description",
                ".product .entry-summary",
            ),
            specifications=self._table_rows(
                parser,
                ".woocommerce-product-attributes-item",
                ".woocommerce-product-attributes-item__label",
                ".woocommerce-product-attributes-item__value",
            ),
            features=self._texts(parser, ".woocommerce-product-details__short-description li"),
            rating_text=self._text(parser, ".woocommerce-product-rating .star-rating strong.rating", ".star-rating"),
            rating_count_text=self._text(parser, ".woocommerce-review-link .count"),
            primary_image_url=(
                gallery[0] if gallery else self._attr(parser, ".product .images img", "src")
            ),
            images=gallery,
            availability_text=self._text(parser, ".stock"),
            categories=self._texts(parser, ".posted_in a"),
        )
