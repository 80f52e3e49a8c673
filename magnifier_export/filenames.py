from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote, urljoin, urlsplit

DEFAULT_FILENAME = "image.png"
_EXTENSION = re.compile(r"\.[^.]+$")
_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def suggest_filename(url: Optional[str], base_url: Optional[str] = None) -> str:
    """Last path segment of ``url`` when it looks like a file name, else ``image.png``."""
    if not url or url.startswith("data:"):
        return DEFAULT_FILENAME
    target = url
    if url.startswith("blob:"):
        # blob:https://host/uuid carries the creating page's URL, never a file name.
        target = url[len("blob:"):]
    elif base_url:
        target = urljoin(base_url, url)
    try:
        path = urlsplit(target).path
    except ValueError:
        return DEFAULT_FILENAME
    last = unquote(path.split("/")[-1]) if path else ""
    last = _UNSAFE_CHARS.sub("_", last).strip()
    if last and "." in last:
        return last
    return DEFAULT_FILENAME


def with_png_extension(filename: str) -> str:
    renamed = _EXTENSION.sub(".png", filename or "")
    if not renamed or renamed == ".png":
        return DEFAULT_FILENAME
    if "." not in renamed:
        return f"{renamed}.png"
    return renamed
