"""Headless browser extractor for JavaScript-rendered product pages."""

import asyncio
import logging
import time
from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from selectolax.parser import HTMLParser

from src import metrics
from src.config import settings
from src.ingest.base import BaseExtractor, ExtractionError, RawProductData

logger = logging.getLogger(__name__)


# Chromium flags for running inside containers
BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--disable-extensions",
]


class HeadlessPageExtractor(BaseExtractor):
    """Renders a product page in headless Chromium and parses the result.

    Each extraction owns its browser for exactly one page load: the browser
    is launched and closed inside ``_page_session`` so a timeout or error
    never leaks a Chromium process. Subclasses set ``READY_SELECTOR`` (the
    DOM marker that means the product content has rendered) and implement
    ``parse`` against the rendered HTML.
    """

    READY_SELECTOR: str = "body"

    def __init__(
        self,
        timeout_ms: int | None = None,
        ready_timeout_ms: int | None = None,
        user_agent: str | None = None,
        headless: bool = True,
    ):
        """
        Initialize headless page extractor.

        Args:
            timeout_ms: Hard ceiling for navigation + ready wait + snapshot
            ready_timeout_ms: Milliseconds to wait for READY_SELECTOR
            user_agent: Browser user agent
            headless: Run Chromium without a window
        """
        self.timeout_ms = timeout_ms or settings.scraping_timeout_ms
        self.ready_timeout_ms = ready_timeout_ms or settings.ready_selector_timeout_ms
        self.user_agent = user_agent or settings.user_agent
        self.headless = headless

    @asynccontextmanager
    async def _page_session(self) -> AsyncIterator[Page]:
        """Launch a browser, yield a fresh page, and always tear it all down."""
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
            try:
                context = await browser.new_context(user_agent=self.user_agent, locale="en-US")
                page = await context.new_page()
                yield page
            finally:
                await browser.close()

    async def _render(self, url: str) -> str:
        """Load ``url``, wait for the ready marker and return the rendered HTML."""
        async with self._page_session() as page:
            logger.debug(f"Navigating to {url}")
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)

            # None for same-document navigations; anything else must be 2xx
            if response is not None and not response.ok:
                status = response.status
                raise self.fail(
                    f"HTTP {status} from {url}",
                    retryable=status >= 500 or status == 429,
                )

            try:
                await page.wait_for_selector(self.READY_SELECTOR, timeout=self.ready_timeout_ms)
            except PlaywrightTimeoutError as e:
                page_title = await page.title()
                raise self.fail(
                    f"Ready marker {self.READY_SELECTOR!r} not found on {url}"
                    f"{f' (page: {page_title})' if page_title else ''}",
                    cause=e,
                ) from e

            return await page.content()

    async def extract(self, url: str) -> RawProductData:
        """
        Render and parse a product page.

        Args:
            url: Normalized product URL

        Returns:
            RawProductData with raw field text

        Raises:
            ExtractionError: On timeout, navigation failure or missing structure
        """
        start = time.monotonic()
        try:
            html = await asyncio.wait_for(self._render(url), timeout=self.timeout_ms / 1000)
        except ExtractionError:
            raise
        except asyncio.TimeoutError as e:
            raise self.fail(
                f"Timed out after {self.timeout_ms}ms rendering {url}", cause=e, retryable=True
            ) from e
        except PlaywrightTimeoutError as e:
            raise self.fail(f"Navigation timeout for {url}", cause=e, retryable=True) from e
        except PlaywrightError as e:
            raise self.fail(f"Page failed to load: {e}", cause=e, retryable=True) from e
        finally:
            metrics.extraction_duration_seconds.labels(platform=self.platform.value).observe(
                time.monotonic() - start
            )

        return self.parse_html(html, url)

    def parse_html(self, html: str, url: str) -> RawProductData:
        """Parse rendered HTML, wrapping parser failures as ExtractionError."""
        try:
            raw = self.parse(HTMLParser(html), url)
        except ExtractionError:
            raise
        except Exception as e:
            raise self.fail(f"Could not parse page {url}: {type(e).__name__}: {e}", cause=e) from e

        if not (raw.name or "").strip():
            raise self.fail(f"Product title missing from {url}")

        logger.info(f"Extracted {self.platform.value} product from {url}: {raw.name[:60]!r}")
        return raw

    @abstractmethod
    def parse(self, parser: HTMLParser, url: str) -> RawProductData:
        """Assemble raw fields from the rendered DOM. Implemented per platform."""
        pass

    # ------------------------------------------------------------------
    # DOM helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _text(parser: HTMLParser, *selectors: str) -> Optional[str]:
        """Text of the first selector that matches a non-empty element."""
        for selector in selectors:
            node = parser.css_first(selector)
            if node is not None:
                text = node.text().strip()
                if text:
                    return text
        return None

    @staticmethod
    def _texts(parser: HTMLParser, selector: str) -> List[str]:
        """Non-empty texts of every element matching ``selector``."""
        texts = []
        for node in parser.css(selector):
            text = node.text().strip()
            if text:
                texts.append(text)
        return texts

    @staticmethod
    def _attr(parser: HTMLParser, selector: str, attr: str) -> Optional[str]:
        node = parser.css_first(selector)
        if node is None:
            return None
        return node.attributes.get(attr) or None

    @staticmethod
    def _attrs(parser: HTMLParser, selector: str, attr: str) -> List[str]:
        values = []
        for node in parser.css(selector):
            value = node.attributes.get(attr)
            if value:
                values.append(value)
        return values

    @staticmethod
    def _table_rows(
        parser: HTMLParser, row_selector: str, key_selector: str, value_selector: str
    ) -> dict[str, str]:
        """Key/value pairs from a specification table, in page order."""
        rows: dict[str, str] = {}
        for row in parser.css(row_selector):
            key_node = row.css_first(key_selector)
            value_node = row.css_first(value_selector)
            if key_node is None or value_node is None:
                continue
            key = key_node.text().strip()
            value = value_node.text().strip()
            if key and value:
                rows[key] = value
        return rows
