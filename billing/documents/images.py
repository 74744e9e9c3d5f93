"""
billing/documents/images.py

Loads pad / signature images for the renderers.

Supported sources:
- data: URLs (base64)
- http(s) URLs (requests, bounded by a timeout)
- local paths; web-style paths ("/images/pad.png") resolve under the asset root first

A source that cannot be loaded returns None and logs a warning. Renderers then keep the
reserved space empty: a missing watermark or seal degrades the document, it never aborts it.
"""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class ImageLoader:
    """Per-render image cache. Not shared across requests."""

    def __init__(self, asset_root: str | Path | None = None, timeout: float = 10):
        self.asset_root = Path(asset_root) if asset_root else None
        self.timeout = timeout
        self._cache: dict = {}

    # ------------------------------------------------------------------
    # Raw bytes
    # ------------------------------------------------------------------
    def _read_local(self, src: str) -> bytes | None:
        candidates = []
        if self.asset_root is not None:
            candidates.append(self.asset_root / src.lstrip("/\\"))
        candidates.append(Path(src))

        for path in candidates:
            if path.is_file():
                return path.read_bytes()
        return None

    def _read(self, src: str) -> bytes | None:
        if src.startswith("data:"):
            _, _, payload = src.partition(",")
            return base64.b64decode(payload)
        if src.startswith(("http://", "https://")):
            response = requests.get(src, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        return self._read_local(src)

    def load(self, src: str | None) -> bytes | None:
        """Image bytes, or None when the source is empty or unreachable."""
        if not src:
            return None
        if src in self._cache:
            return self._cache[src]

        try:
            data = self._read(src)
        except (OSError, ValueError, requests.RequestException) as exc:
            logger.warning("Image %s could not be loaded: %s", src[:80], exc)
            data = None
        else:
            if data is None:
                logger.warning("Image %s not found", src[:80])

        self._cache[src] = data
        return data

    # ------------------------------------------------------------------
    # Derived forms
    # ------------------------------------------------------------------
    def png(self, src: str | None, opacity: float = 1.0) -> bytes | None:
        """Image re-encoded as PNG, with its alpha channel scaled by `opacity` (pad watermark)."""
        data = self.load(src)
        if data is None:
            return None

        key = (src, "png", round(opacity, 3))
        if key in self._cache:
            return self._cache[key]

        try:
            with Image.open(io.BytesIO(data)) as image:
                image = image.convert("RGBA")
                if opacity < 1:
                    alpha = image.getchannel("A").point(lambda a: int(a * opacity))
                    image.putalpha(alpha)
                out = io.BytesIO()
                image.save(out, format="PNG")
                result = out.getvalue()
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning("Image %s is not a readable picture: %s", src[:80], exc)
            result = None

        self._cache[key] = result
        return result

    def data_uri(self, src: str | None, opacity: float = 1.0) -> str | None:
        data = self.png(src, opacity)
        if data is None:
            return None
        return "data:image/png;base64," + base64.b64encode(data).decode("ascii")
