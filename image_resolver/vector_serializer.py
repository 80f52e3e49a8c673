"""Serialize vector graphics into self-contained documents and data URLs."""
from __future__ import annotations

import re
from typing import Callable, Optional
from urllib.parse import quote

from image_resolver.nodes import VectorNode

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
SVG_DATA_PREFIX = "data:image/svg+xml;charset=utf-8,"
# Characters encodeURIComponent leaves alone besides alphanumerics and "-_.~".
_URI_COMPONENT_SAFE = "!*'()"
_ROOT_TAG = re.compile(r"<svg\b", re.IGNORECASE)
_XMLNS_ATTR = re.compile(r"<svg\b[^>]*\sxmlns\s*=", re.IGNORECASE | re.DOTALL)

VectorSerializer = Callable[[VectorNode], Optional[str]]


def serialize_vector(node: VectorNode) -> Optional[str]:
    """Return a standalone SVG document for ``node``, or None when it has no markup."""
    markup = (node.markup or "").strip()
    if not markup:
        return None
    if _ROOT_TAG.match(markup) and not _XMLNS_ATTR.match(markup):
        markup = _ROOT_TAG.sub(f'<svg xmlns="{SVG_NAMESPACE}"', markup, count=1)
    return markup


def svg_data_url(document: str) -> str:
    return SVG_DATA_PREFIX + quote(document, safe=_URI_COMPONENT_SAFE)
