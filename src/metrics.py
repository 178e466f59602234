"""Prometheus metrics for the product scraper."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("product_scraper", "Product scraper application info")
app_info.info({"version": "0.1.0", "name": "product-scraper"})

# Orchestration metrics
scrape_requests_total = Counter(
    "scrape_requests_total",
    "Total number of scrape invocations by outcome",
    ["platform", "status"],
)

scrape_errors_total = Counter(
    "scrape_errors_total",
    "Total number of failed scrapes by error code",
    ["code"],
)

# Extraction metrics
extraction_duration_seconds = Histogram(
    "extraction_duration_seconds",
    "Time spent extracting a product page",
    ["platform"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

extraction_retries_total = Counter(
    "extraction_retries_total",
    "Total number of extraction re-attempts after transient failures",
    ["platform"],
)

# Store metrics
product_upserts_total = Counter(
    "product_upserts_total",
    "Total number of product upserts",
    ["action"],  # inserted, updated, race_recovered
)
