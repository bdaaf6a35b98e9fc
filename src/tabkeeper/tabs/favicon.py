"""Favicon url derivation for tabs that do not report one."""

from urllib.parse import urlsplit

FAVICON_SERVICE = "https://www.google.com/s2/favicons?sz=32&domain_url={origin}"


def favicon_for(url: str) -> str:
    """Derive a favicon url from the page origin; empty when there is no origin."""
    try:
        parts = urlsplit(url or "")
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    return FAVICON_SERVICE.format(origin=f"{parts.scheme}://{parts.netloc}")
