"""Host-based e-commerce platform detection.

Detection only looks at the hostname. Self-hosted storefronts (WooCommerce,
Shopify on a custom domain) can't be recognized this way and come back as
``unknown`` unless an operator maps their host in
``settings.custom_platform_hosts``.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
from urllib.parse import urlsplit

from src.config import settings
from src.ingest.base import Platform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostRule:
    """One routing-table entry: a hostname predicate and the platform it implies."""

    platform: Platform
    matches: Callable[[str], bool]
    description: str


def _suffix_match(suffix: str) -> Callable[[str], bool]:
    suffix = suffix.lower().lstrip(".")
    return lambda host: host == suffix or host.endswith(f".{suffix}")


DEFAULT_RULES: list[HostRule] = [
    HostRule(
        Platform.AMAZON,
        lambda host: "amazon." in host or "amzn." in host or host == "a.co",
        "Amazon retail and short-link domains",
    ),
    HostRule(
        Platform.SHOPIFY,
        _suffix_match("myshopify.com"),
        "Shopify hosted-store domains",
    ),
]


class PlatformDetector:
    """Classifies product URLs into platforms using a fixed host table."""

    def __init__(self, custom_hosts: Optional[Mapping[str, str]] = None):
        """
        Args:
            custom_hosts: Hostname suffix -> platform value, checked before
                the built-in rules. Defaults to settings.custom_platform_hosts.
        """
        hosts = settings.custom_platform_hosts if custom_hosts is None else custom_hosts
        self.rules: list[HostRule] = []

        for suffix, platform_name in hosts.items():
            try:
                platform = Platform(platform_name.lower())
            except ValueError:
                logger.warning(
                    f"Ignoring custom host rule {suffix!r}: unknown platform {platform_name!r}"
                )
                continue
            self.rules.append(HostRule(platform, _suffix_match(suffix), f"custom host {suffix}"))

        self.rules.extend(DEFAULT_RULES)

    def detect(self, url: str) -> Platform:
        """Return the platform for ``url``; ``Platform.UNKNOWN`` when nothing matches."""
        try:
            hostname = (urlsplit(url).hostname or "").lower()
        except ValueError:
            return Platform.UNKNOWN

        if not hostname:
            return Platform.UNKNOWN

        for rule in self.rules:
            if rule.matches(hostname):
                logger.debug(f"Detected {rule.platform.value} for {hostname} ({rule.description})")
                return rule.platform

        return Platform.UNKNOWN
