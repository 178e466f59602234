"""Product URL normalization and validation."""

from urllib.parse import urlsplit


def normalize_url(raw: str) -> str:
    """Trim the input and default to https when no scheme is given."""
    url = (raw or "").strip()
    if not url.lower().startswith(("http://", "https://")):
        return f"https://{url}"
    return url


def is_valid_url(url: str) -> bool:
    """True iff ``url`` is an absolute http(s) URL with a usable hostname."""
    if not url or any(ch.isspace() for ch in url):
        return False

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing .port validates the netloc's port component
        parts.port
    except ValueError:
        return False

    if parts.scheme not in ("http", "https") or not hostname:
        return False

    return not hostname.startswith(".") and ".." not in hostname
