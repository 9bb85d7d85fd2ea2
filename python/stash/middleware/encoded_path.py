"""Pure ASGI middleware that routes on the still-encoded request path.

Servers hand the app a percent-decoded scope["path"], so the bucket name
"photos/delete" sent as /bucket/photos%2Fdelete would route exactly like
POST /bucket/photos/delete. This middleware rebuilds scope["path"] from
scope["raw_path"] segment by segment: each segment is decoded, then "%"
and "/" are re-escaped, so a segment never contains a path separator.
Route handlers turn segments back into names with decode_segment().

Requests without raw_path pass through untouched.
"""

import re
from urllib.parse import unquote_to_bytes

from starlette.types import ASGIApp, Receive, Scope, Send

_ESCAPED = re.compile(r"%(25|2F)")
_UNESCAPE = {"25": "%", "2F": "/"}


def encode_segment(value: str) -> str:
    """Escape the two characters that cannot appear raw in a routed segment."""
    return value.replace("%", "%25").replace("/", "%2F")


def decode_segment(value: str) -> str:
    """Inverse of encode_segment()."""
    return _ESCAPED.sub(lambda match: _UNESCAPE[match.group(1)], value)


def routing_path(raw_path: bytes) -> str:
    """Build the routing path from the raw request path (no query string)."""
    raw_path = raw_path.split(b"?", 1)[0]
    return "/".join(
        encode_segment(unquote_to_bytes(segment).decode("utf-8", errors="replace"))
        for segment in raw_path.split(b"/")
    )


class EncodedPathMiddleware:
    """Replaces scope["path"] with the segment-preserving routing path."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        raw_path = scope.get("raw_path") if scope["type"] == "http" else None
        if raw_path:
            scope = dict(scope)
            scope["path"] = routing_path(raw_path)
        await self.app(scope, receive, send)
