"""API error definitions.

All engine errors are defined here with their HTTP status codes and the
user-visible message the transport renders for them.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Identity errors
    E_INVITATION_INVALID = "E_INVITATION_INVALID"
    E_ACCOUNT_EXISTS = "E_ACCOUNT_EXISTS"
    E_ACCOUNT_NOT_FOUND = "E_ACCOUNT_NOT_FOUND"
    E_ACCOUNT_SUSPENDED = "E_ACCOUNT_SUSPENDED"
    E_CREDENTIAL_MISMATCH = "E_CREDENTIAL_MISMATCH"
    E_SESSION_EXPIRED = "E_SESSION_EXPIRED"
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Storage addressing errors
    E_BUCKET_EXISTS = "E_BUCKET_EXISTS"
    E_BUCKET_MISSING = "E_BUCKET_MISSING"
    E_FILE_MISSING = "E_FILE_MISSING"

    # Sharing errors
    E_SHARE_MISSING = "E_SHARE_MISSING"
    E_SHARE_INACTIVE = "E_SHARE_INACTIVE"

    # Accounting errors
    E_GRANT_NOT_FOUND = "E_GRANT_NOT_FOUND"
    E_GRANT_ALREADY_REDEEMED = "E_GRANT_ALREADY_REDEEMED"
    E_QUOTA_EXCEEDED = "E_QUOTA_EXCEEDED"

    # Generic errors
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_NOT_FOUND = "E_NOT_FOUND"

    # Server errors
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 500
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_INVITATION_INVALID: 403,
    ApiErrorCode.E_ACCOUNT_EXISTS: 409,
    ApiErrorCode.E_ACCOUNT_NOT_FOUND: 404,
    ApiErrorCode.E_ACCOUNT_SUSPENDED: 403,
    ApiErrorCode.E_CREDENTIAL_MISMATCH: 401,
    ApiErrorCode.E_SESSION_EXPIRED: 401,
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_BUCKET_EXISTS: 409,
    ApiErrorCode.E_BUCKET_MISSING: 404,
    ApiErrorCode.E_FILE_MISSING: 404,
    ApiErrorCode.E_SHARE_MISSING: 404,
    ApiErrorCode.E_SHARE_INACTIVE: 403,
    ApiErrorCode.E_GRANT_NOT_FOUND: 404,
    ApiErrorCode.E_GRANT_ALREADY_REDEEMED: 409,
    ApiErrorCode.E_QUOTA_EXCEEDED: 413,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_STORAGE_ERROR: 500,
    ApiErrorCode.E_INTERNAL: 500,
}

# Default user-visible message for each code
ERROR_CODE_TO_MESSAGE: dict[ApiErrorCode, str] = {
    ApiErrorCode.E_INVITATION_INVALID: "Invalid invitation",
    ApiErrorCode.E_ACCOUNT_EXISTS: "Account already exists",
    ApiErrorCode.E_ACCOUNT_NOT_FOUND: "Account not found",
    ApiErrorCode.E_ACCOUNT_SUSPENDED: "Account is suspended",
    ApiErrorCode.E_CREDENTIAL_MISMATCH: "Credentials do not match",
    ApiErrorCode.E_SESSION_EXPIRED: "Session has expired",
    ApiErrorCode.E_UNAUTHENTICATED: "Authentication required",
    ApiErrorCode.E_BUCKET_EXISTS: "Bucket already exists",
    ApiErrorCode.E_BUCKET_MISSING: "Bucket is missing",
    ApiErrorCode.E_FILE_MISSING: "File is missing",
    ApiErrorCode.E_SHARE_MISSING: "Share is missing",
    ApiErrorCode.E_SHARE_INACTIVE: "Share is inactive",
    ApiErrorCode.E_GRANT_NOT_FOUND: "Quota grant not found",
    ApiErrorCode.E_GRANT_ALREADY_REDEEMED: "Quota grant already redeemed",
    ApiErrorCode.E_QUOTA_EXCEEDED: "Storage quota exceeded",
    ApiErrorCode.E_INVALID_REQUEST: "Invalid request",
    ApiErrorCode.E_NOT_FOUND: "Not found",
    ApiErrorCode.E_STORAGE_ERROR: "Storage error",
    ApiErrorCode.E_INTERNAL: "Internal server error",
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str | None = None):
        self.code = code
        self.message = message or ERROR_CODE_TO_MESSAGE.get(code, "Error")
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(self.message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str | None = None):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Resource already exists or was already consumed."""

    def __init__(self, code: ApiErrorCode, message: str | None = None):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Access denied by account or share state."""

    def __init__(self, code: ApiErrorCode, message: str | None = None):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str | None = None
    ):
        super().__init__(code, message)
