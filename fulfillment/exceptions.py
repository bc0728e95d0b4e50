"""Shared exceptions for the fulfillment service.

Every failure the delivery pipeline can surface to a caller derives from
FulfillmentError. Each subclass carries the HTTP status it maps to and, for
pipeline stages, a stage tag so clients can tell "nothing happened" apart
from "staged but not yet archived" and from "fully delivered".

Stage tags:
    r2-temp: staging store write failed (nothing persisted)
    r2-verify: staged object could not be read back
    archive-upload: permanent archive rejected the PUT (staging succeeded)
    archive-connect: permanent archive unreachable (staging succeeded)
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fulfillment.models import OrderStatus


class FulfillmentError(Exception):
    """Base class for errors rendered to API callers.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status the error maps to.
        stage: Pipeline stage tag, or None outside the upload pipeline.
        details: Optional diagnostic text (provider body, exception text).
    """

    status_code: int = 500
    stage: str | None = None

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        """Build the JSON body returned to the client."""
        body: dict[str, Any] = {"error": self.message}
        if self.stage:
            body["stage"] = self.stage
        if self.details:
            body["details"] = self.details
        return body


class ConfigurationError(FulfillmentError):
    """Raised when required configuration is missing.

    For example, archive credentials are not set, so no upload stage
    may start.
    """

    status_code = 500


class ValidationError(FulfillmentError):
    """Raised for bad or missing input (empty payload, missing identifiers)."""

    status_code = 400


class CapacityError(FulfillmentError):
    """Raised when a payload exceeds the size limit for its file type."""

    status_code = 400

    def __init__(self, message: str, file_size: int, max_size: int, file_type: str):
        self.file_size = file_size
        self.max_size = max_size
        self.file_type = file_type
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        body.update(fileSize=self.file_size, maxSize=self.max_size, fileType=self.file_type)
        return body


class StagingFailure(FulfillmentError):
    """Raised when writing to the staging store fails. Fatal to the request."""

    status_code = 500
    stage = "r2-temp"


class StagingVerifyFailure(FulfillmentError):
    """Raised when a staged object cannot be read back after writing."""

    status_code = 500
    stage = "r2-verify"


class ArchiveError(FulfillmentError):
    """Base for permanent-archive failures that happen after staging succeeded.

    The response always reports r2Uploaded=true, so the caller can retry only
    the archive stage.
    """

    status_code = 502

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        body["r2Uploaded"] = True
        return body


class ArchiveUploadFailure(ArchiveError):
    """Raised when the archive answers the PUT with a non-2xx status."""

    stage = "archive-upload"

    def __init__(self, message: str, status: int, details: str | None = None):
        self.status = status
        super().__init__(message, details)

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        body["status"] = self.status
        return body


class ArchiveConnectError(ArchiveError):
    """Raised when the archive cannot be reached at all."""

    stage = "archive-connect"


class ArchiveVerifyTimeout(FulfillmentError):
    """Durability checks exhausted without seeing the archived object.

    Never propagated to callers: the pipeline logs it and reports
    archiveVerified=false.
    """

    def __init__(self, url: str, attempts: int, last_status: int | None = None):
        self.url = url
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(f"Archive object not visible after {attempts} attempts: {url}")


class NotFoundError(FulfillmentError):
    """Raised for an unknown order or checkout session."""

    status_code = 404


class InvalidStateTransitionError(FulfillmentError):
    """Raised when attempting a status change the order state machine forbids.

    Attributes:
        from_status: The current OrderStatus.
        to_status: The OrderStatus that was attempted.
    """

    status_code = 409

    def __init__(self, message: str, from_status: "OrderStatus", to_status: "OrderStatus"):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)

    def __str__(self) -> str:
        base_message = super().__str__()
        return f"{base_message} (from={self.from_status.value}, to={self.to_status.value})"


class ExternalNotifyFailure(FulfillmentError):
    """A notification endpoint rejected or failed an event. Logged only."""

    def __init__(self, message: str, endpoint: str, status: int | None = None):
        self.endpoint = endpoint
        self.status = status
        super().__init__(message)


class ProviderError(FulfillmentError):
    """Raised when the checkout provider rejects a call with a non-retriable status."""

    status_code = 502

    def __init__(self, message: str, status: int, details: str | None = None):
        self.status = status
        super().__init__(message, details)
