"""HTTP middleware for the Stash API."""

from stash.middleware.encoded_path import EncodedPathMiddleware
from stash.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["REQUEST_ID_HEADER", "EncodedPathMiddleware", "RequestIDMiddleware"]
