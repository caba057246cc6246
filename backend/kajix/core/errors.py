"""API error classes.

Every failure the services report is one of these. Exception handlers in
``kajix.main`` map them to HTTP status codes and the standard error envelope,
so callers switch on a closed set of kinds instead of driver error strings.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class BadRequestError(APIError):
    """Request could not be fulfilled as given (400).

    Use for malformed URLs, navigation or extraction failures while
    scraping, and lookups by an id that does not resolve.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="BAD_REQUEST",
            message=message,
            status_code=400,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use for bad credentials and for tokens that are invalid, expired,
    already used, or revoked.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when a user record doesn't exist OR isn't the caller's. Stored
    pages looked up by id report absence as BadRequestError instead.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class RequestTimeoutError(APIError):
    """An upstream operation exceeded its deadline (408).

    Raised when a page navigation does not finish within the configured
    scraping timeout.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="REQUEST_TIMEOUT",
            message=message,
            status_code=408,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use when a store or driver fails unexpectedly. Never expose driver
    details or stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
