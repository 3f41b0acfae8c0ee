"""Protocol-wide constants."""

SCHEME = "gemini"
DEFAULT_PORT = 1965

#: Status used for any failure below the protocol layer (DNS, refused
#: connection, TLS, timeout, cancellation).  The failure text goes in meta.
CONNECTION_ERROR_STATUS = 49

#: 2 digit status + space + 1024 byte meta (a max-sized redirect URL) + slack.
MAX_RESPONSE_LINE_LENGTH = 1100

#: Longest URL a request line may carry, not counting CRLF.
MAX_REQUEST_URL_LENGTH = 1024

BODY_CHUNK_SIZE = 4096

DEFAULT_MIME_TYPE = "text/gemini"
DEFAULT_CHARSET = "utf-8"

HASH_ALGORITHM = "sha256"
