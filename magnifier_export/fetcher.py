"""Fetch image bytes for data:, blob: and network URLs.

When the page origin is known the fetcher applies the same rule a browser
would: a cross-origin response is only readable when it carries a matching
``Access-Control-Allow-Origin`` header.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import unquote_to_bytes, urljoin, urlsplit

import requests

from image_resolver.srcset import select as select_srcset
from magnifier_export.http_session import create_http_session
from magnifier_export.raster_surface import DisplayedImage, decode_image

_LOGGER = logging.getLogger("ModernMagnifier.Export.Fetch")

DEFAULT_TIMEOUT = 10.0


class FetchBlockedError(RuntimeError):
    """The URL could not be read: refused by CORS, missing, or a network failure."""


@dataclass(frozen=True)
class FetchedImage:
    url: str
    data: bytes
    content_type: str = ""
    cors_allowed: bool = True


def origin_of(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def decode_data_url(url: str) -> FetchedImage:
    header, separator, payload = url[len("data:"):].partition(",")
    if not separator:
        raise FetchBlockedError("malformed data URL")
    tokens = [token.strip() for token in header.split(";")]
    content_type = tokens[0] or "text/plain"
    if "base64" in (token.lower() for token in tokens[1:]):
        try:
            data = base64.b64decode(unquote_to_bytes(payload), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise FetchBlockedError(f"undecodable base64 data URL: {exc}") from exc
    else:
        data = unquote_to_bytes(payload)
    return FetchedImage(url=url, data=data, content_type=content_type)


class ImageFetcher:
    """Reads image bytes the way the page that showed them could."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        blobs: Optional[Mapping[str, bytes]] = None,
        page_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
    ) -> None:
        self._session = session
        self._user_agent = user_agent
        self._blobs = dict(blobs or {})
        self._page_url = page_url
        self._page_origin = origin_of(page_url)
        self._timeout = max(0.5, float(timeout))

    @property
    def page_url(self) -> Optional[str]:
        return self._page_url

    @property
    def page_origin(self) -> Optional[str]:
        return self._page_origin

    def absolute_url(self, url: str) -> str:
        if url.startswith(("data:", "blob:")) or not self._page_url:
            return url
        return urljoin(self._page_url, url)

    def fetch(self, url: str, *, enforce_cors: bool = True) -> FetchedImage:
        if not url:
            raise FetchBlockedError("empty URL")
        if url.startswith("data:"):
            return decode_data_url(url)
        if url.startswith("blob:"):
            return self._fetch_blob(url)
        absolute = self.absolute_url(url)
        if origin_of(absolute) is None:
            raise FetchBlockedError(f"unsupported URL scheme: {urlsplit(absolute).scheme or 'none'}")
        return self._fetch_network(absolute, enforce_cors=enforce_cors)

    async def fetch_async(self, url: str, *, enforce_cors: bool = True) -> FetchedImage:
        return await asyncio.to_thread(self.fetch, url, enforce_cors=enforce_cors)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def _fetch_blob(self, url: str) -> FetchedImage:
        data = self._blobs.get(url)
        if data is None:
            raise FetchBlockedError("blob URL is not available outside the page that created it")
        return FetchedImage(url=url, data=data)

    def _fetch_network(self, url: str, *, enforce_cors: bool) -> FetchedImage:
        cross_origin = self._page_origin is not None and origin_of(url) != self._page_origin
        headers = {"Origin": self._page_origin} if cross_origin and self._page_origin else {}
        if self._session is None:
            self._session = create_http_session(self._user_agent)
        try:
            response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise FetchBlockedError(f"request failed: {exc}") from exc
        try:
            response.raise_for_status()
            data = response.content
            content_type = (response.headers.get("Content-Type") or "").split(";")[0].strip().lower()
            allow_origin = (response.headers.get("Access-Control-Allow-Origin") or "").strip()
        except requests.RequestException as exc:
            raise FetchBlockedError(f"request failed: {exc}") from exc
        finally:
            response.close()
        cors_allowed = not cross_origin or allow_origin in ("*", self._page_origin)
        if enforce_cors and not cors_allowed:
            _LOGGER.debug("CORS refused for %s (page origin %s)", url, self._page_origin)
            raise FetchBlockedError("blocked by cross-origin policy")
        return FetchedImage(url=url, data=data, content_type=content_type, cors_allowed=cors_allowed)


def load_displayed_image(url: str, fetcher: ImageFetcher, *, srcset: Optional[str] = None) -> DisplayedImage:
    """Decode ``url`` for display the way an <img> would: cross-origin loads succeed but taint."""
    bound_url = select_srcset(srcset) or url
    try:
        fetched = fetcher.fetch(bound_url, enforce_cors=False)
    except FetchBlockedError as exc:
        _LOGGER.warning("Unable to load image for display: %s", exc)
        return DisplayedImage(url=bound_url)
    image = decode_image(fetched.data)
    if image is None:
        _LOGGER.warning("Image at %s could not be decoded (%d bytes)", bound_url[:96], len(fetched.data))
        return DisplayedImage(url=bound_url)
    return DisplayedImage(url=bound_url, image=image, tainted=not fetched.cors_allowed)


async def load_displayed_image_async(
    url: str, fetcher: ImageFetcher, *, srcset: Optional[str] = None
) -> DisplayedImage:
    return await asyncio.to_thread(load_displayed_image, url, fetcher, srcset=srcset)
