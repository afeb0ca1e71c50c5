"""
FontFlow Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for the font pipeline.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    FontFlowError (base)
    ├── ValidationError             → 400 Bad Request (client can fix)
    │   ├── NoFileProvidedError     → 400, error code "no_file_provided"
    │   ├── FileTooLargeError       → 400, error code "file_too_large"
    │   ├── UnsupportedFormatError  → 400, error code "unsupported_format"
    │   └── CorruptFontError        → 400, error code "corrupt_font"
    ├── AuthenticationError         → 401 Unauthorized
    ├── NotFoundError               → 404 Not Found
    ├── ConversionFailedError       → never surfaced (upload continues without WOFF2)
    ├── ObjectStorageError          → 500 Internal Server Error
    └── DatabaseError               → 500 Internal Server Error

UnsupportedFormatError and CorruptFontError are deliberately separate classes
with separate codes: "wrong kind of file" and "damaged font file" are
different operator problems.
"""

from typing import Any, Dict, Optional


class FontFlowError(Exception):
    """
    Base exception for all FontFlow application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(FontFlowError):
    """
    Raised when client input fails validation.

    HTTP:    400 Bad Request

    Subclasses override `error_code` so clients can branch on the reason
    without parsing the message.

    Example response:
        {
            "error": "unsupported_format",
            "message": "The uploaded file is not a supported font (TTF, OTF, WOFF, WOFF2).",
            "details": {"field": "font"}
        }
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NoFileProvidedError(ValidationError):
    """The upload request carried no file, or an empty one."""

    error_code = "no_file_provided"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="No font file uploaded",
            field="font",
            context=context,
        )


class FileTooLargeError(ValidationError):
    """The upload exceeds the configured MAX_FILE_SIZE."""

    error_code = "file_too_large"

    def __init__(self, size: int, max_size: int):
        super().__init__(
            message=(
                f"File size ({size / (1024 * 1024):.1f}MB) exceeds "
                f"maximum of {max_size / (1024 * 1024):.0f}MB."
            ),
            field="font",
            context={"actual_size": size, "max_size": max_size},
        )


class UnsupportedFormatError(ValidationError):
    """
    The buffer's leading bytes match no recognized font container.

    When:  Text files, images, archives, empty buffers, or fonts in formats
           we do not accept (EOT, Type 1).
    """

    error_code = "unsupported_format"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="The uploaded file is not a supported font (TTF, OTF, WOFF, WOFF2).",
            field="font",
            context=context,
        )


class CorruptFontError(ValidationError):
    """
    The signature matched a font container but its internal structure did not parse.

    When:  Truncated table directory, table offsets past the end of the buffer,
           undecodable `name` or `OS/2` tables.
    """

    error_code = "corrupt_font"

    def __init__(self, ext: str, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["detected_format"] = ext
        super().__init__(
            message=f"The uploaded {ext.upper()} font is damaged and could not be parsed.",
            field="font",
            context=ctx,
        )
        self.ext = ext


class AuthenticationError(FontFlowError):
    """
    Raised when the bearer token is missing, expired, or fails verification.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Could not validate credentials",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(FontFlowError):
    """
    Raised when a requested resource does not exist for the caller.

    HTTP:    404 Not Found

    Fonts owned by another user are reported as not found too, so the
    response never confirms that someone else's font id exists.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConversionFailedError(FontFlowError):
    """
    Raised by a single transcoding step (OTF → TTF, TTF → WOFF2, WOFF decode).

    Never reaches the client: ensure_woff2() converts it into a None result,
    and the upload proceeds with a null WOFF2 key and a warning.
    """

    def __init__(
        self,
        step: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["step"] = step
        super().__init__(message=f"Font conversion step '{step}' failed", context=ctx)
        self.step = step


class ObjectStorageError(FontFlowError):
    """
    Raised when an object storage operation fails.

    When:    S3 unreachable, credentials rejected, bucket missing, disk full.
    HTTP:    500 Internal Server Error (generic message; details are logged)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(FontFlowError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. SQL, constraint
    names and driver errors are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
