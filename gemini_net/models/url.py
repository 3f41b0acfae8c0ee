"""Canonical identity for ``gemini://`` URLs.

Parsing and dot-segment removal are delegated to ``httpx.URL``.  On top of
that a ``GeminiUrl`` enforces the gemini scheme, rejects degenerate hosts,
and normalizes to a single form used for equality and hashing::

    >>> GeminiUrl("gemini://Example.com.:1965//docs//index.gmi")
    GeminiUrl('gemini://example.com/docs/index.gmi')

Two URLs are the same resource iff their normalized forms hash to the same
64-bit ``id``.
"""

from __future__ import annotations

import re
import urllib.parse
from functools import total_ordering

import httpx
import xxhash

from gemini_net.core.constants import DEFAULT_PORT, SCHEME
from gemini_net.core.errors import UrlFormatError

# urljoin() only resolves references for schemes it knows to be hierarchical.
for _registry in (urllib.parse.uses_relative, urllib.parse.uses_netloc):
    if SCHEME not in _registry:
        _registry.append(SCHEME)

_REPEATED_SLASHES = re.compile(r"/{2,}")


@total_ordering
class GeminiUrl:
    """An absolute, normalized gemini URL.

    Accepts a string, an ``httpx.URL`` or another ``GeminiUrl``.  Raises
    :class:`UrlFormatError` when the input is not absolute, does not use the
    gemini scheme, or has an empty or degenerate host.
    """

    def __init__(self, url: str | httpx.URL | GeminiUrl) -> None:
        if isinstance(url, GeminiUrl):
            url = url.url
        self.raw = str(url)

        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise UrlFormatError(f"Invalid URL '{self.raw}': {exc}") from exc

        if not parsed.scheme:
            raise UrlFormatError(f"URL '{self.raw}' is not absolute")
        if parsed.scheme != SCHEME:
            raise UrlFormatError(
                f"Attempting to create a non-Gemini URL: '{self.raw}'"
            )

        host = parsed.raw_host.decode("ascii")
        if not host:
            raise UrlFormatError(f"No hostname could be parsed from '{self.raw}'")
        # IPv6 literals were already validated as addresses by httpx.
        if ":" not in host and not host[0].isalnum():
            raise UrlFormatError(f"Invalid hostname '{host}' in '{self.raw}'")
        if host.endswith("."):
            host = host[:-1]

        port = parsed.port
        path, _, query = parsed.raw_path.decode("ascii").partition("?")
        path = _REPEATED_SLASHES.sub("/", path) or "/"

        netloc = f"[{host}]" if ":" in host else host
        if port is not None and port != DEFAULT_PORT:
            netloc = f"{netloc}:{port}"

        self._normalized = f"{SCHEME}://{netloc}{path}"
        if query:
            self._normalized += f"?{query}"

        # Rebuilt without user-info.
        _, hash_mark, fragment = str(parsed).partition("#")
        self._url = httpx.URL(self._normalized + hash_mark + fragment)
        self._hostname = host
        self._port = port if port is not None else DEFAULT_PORT
        self._path = path
        self._query = query
        self._id = int.from_bytes(
            xxhash.xxh64_digest(self._normalized.encode("utf-8")),
            "big",
            signed=True,
        )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def make(cls, url: str | None) -> GeminiUrl | None:
        """Soft constructor: ``None`` instead of an exception."""
        if url is None:
            return None
        try:
            return cls(url)
        except UrlFormatError:
            return None

    @classmethod
    def resolve(cls, base: GeminiUrl, reference: str) -> GeminiUrl | None:
        """Resolve *reference* against *base* (RFC 3986 section 5).

        Returns ``None`` when the result is not a gemini URL, e.g. links to
        ``https:`` or ``mailto:`` found in a page.
        """
        try:
            joined = base.url.join(reference)
        except (httpx.InvalidURL, ValueError):
            return None
        if joined.scheme != SCHEME:
            return None
        try:
            return cls(joined)
        except UrlFormatError:
            return None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        """Signed 64-bit xxHash64 of the normalized URL."""
        return self._id

    @property
    def normalized_url(self) -> str:
        return self._normalized

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeminiUrl):
            return NotImplemented
        return self._id == other._id

    def __lt__(self, other: GeminiUrl) -> bool:
        if not isinstance(other, GeminiUrl):
            return NotImplemented
        return self._normalized < other._normalized

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return self._normalized

    def __repr__(self) -> str:
        return f"GeminiUrl({self._normalized!r})"

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def url(self) -> httpx.URL:
        return self._url

    @property
    def protocol(self) -> str:
        return SCHEME

    @property
    def hostname(self) -> str:
        """DNS-safe host.  IPv6 literals are returned without brackets."""
        return self._hostname

    @property
    def port(self) -> int:
        return self._port

    @property
    def authority(self) -> str:
        return f"{self._hostname}:{self._port}"

    @property
    def path(self) -> str:
        return self._path

    @property
    def filename(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    @property
    def file_extension(self) -> str:
        _, dot, ext = self.filename.rpartition(".")
        return ext if dot else ""

    @property
    def has_query(self) -> bool:
        return bool(self._query)

    @property
    def raw_query(self) -> str:
        """Percent-encoded query string, without the leading ``?``."""
        return self._query

    @property
    def query(self) -> str:
        return urllib.parse.unquote(self._query)

    @property
    def fragment(self) -> str:
        return self._url.fragment

    @property
    def root_url(self) -> str:
        netloc = f"[{self._hostname}]" if ":" in self._hostname else self._hostname
        if self._port != DEFAULT_PORT:
            netloc = f"{netloc}:{self._port}"
        return f"{SCHEME}://{netloc}/"
