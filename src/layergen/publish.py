"""
Raw URL publishing.

Generated artifacts are addressed by ``<raw_url_base>/<path>``; without a
base URL nothing is published and the URL fields stay empty.
"""

from __future__ import annotations


class Publisher:
    """Template raw URLs for written artifacts."""

    def __init__(self, raw_url_base: str | None = None):
        self.raw_url_base = raw_url_base.rstrip("/") if raw_url_base else None

    def url_for(self, path: str | None) -> str | None:
        """
        Raw URL of a relative artifact path.

        Examples:
            >>> Publisher("https://raw.example.com/repo/main/").url_for("app/domain/entities/cart.py")
            'https://raw.example.com/repo/main/app/domain/entities/cart.py'
            >>> Publisher().url_for("app/x.py") is None
            True
        """
        if path is None or self.raw_url_base is None:
            return None
        return f"{self.raw_url_base}/{path.lstrip('/')}"
