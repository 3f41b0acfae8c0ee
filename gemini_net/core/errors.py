"""Exception hierarchy shared by the URL, codec and transport layers.

``UrlFormatError`` and ``ProtocolFormatError`` are raised straight to the
caller of construction / offline parsing.  Inside a live exchange every
``GeminiError`` is folded into a status 49 response by the requestor.
"""

from __future__ import annotations


class GeminiError(Exception):
    """Base class for all gemini_net errors."""


class UrlFormatError(GeminiError, ValueError):
    """Raised when a URL is not an absolute, well-formed gemini:// URL."""


class ProtocolFormatError(GeminiError, ValueError):
    """Raised when bytes on the wire do not follow the Gemini grammar."""


class GeminiConnectionError(GeminiError, ConnectionError):
    """Raised inside an exchange for network-level failures."""


class RequestCancelled(GeminiConnectionError):
    """Raised inside an exchange when the caller's cancel event fires."""
