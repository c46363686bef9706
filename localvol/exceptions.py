"""localvol exceptions.

Every error carries a protocol status code so the HTTP layer and the
reconciler can report it without re-classifying.
"""

from enum import Enum


class StatusCode(str, Enum):
    """Protocol status codes (CSI/gRPC naming)."""

    OK = "OK"
    CANCELLED = "CANCELLED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    ABORTED = "ABORTED"
    INTERNAL = "INTERNAL"


HTTP_STATUS = {
    StatusCode.OK: 200,
    StatusCode.CANCELLED: 499,
    StatusCode.INVALID_ARGUMENT: 400,
    StatusCode.DEADLINE_EXCEEDED: 504,
    StatusCode.NOT_FOUND: 404,
    StatusCode.ALREADY_EXISTS: 409,
    StatusCode.RESOURCE_EXHAUSTED: 507,
    StatusCode.FAILED_PRECONDITION: 412,
    StatusCode.ABORTED: 409,
    StatusCode.INTERNAL: 500,
}


class LocalVolException(Exception):
    """Base exception for localvol errors."""

    message = "An unknown exception occurred."
    code = StatusCode.INTERNAL

    def __init__(self, message=None, **kwargs):
        """Initialize exception with optional custom message."""
        self.kwargs = kwargs
        if message:
            self.message = message
        elif kwargs:
            self.message = self.message % kwargs
        super(LocalVolException, self).__init__(self.message)


class InvalidArgument(LocalVolException):
    """Malformed or missing request field."""

    message = "Invalid argument: %(details)s"
    code = StatusCode.INVALID_ARGUMENT


class InvalidParameters(InvalidArgument):
    """Storage class parameters are missing, unknown or malformed."""

    message = "Invalid storage class parameters: %(details)s"


class ResourceNotFound(LocalVolException):
    """Referenced resource does not exist."""

    message = "%(kind)s %(name)s not found"
    code = StatusCode.NOT_FOUND


class NoMatchingGroup(ResourceNotFound):
    """No candidate volume group lives on the requested node."""

    message = "No volume group among %(candidates)s is located on node %(node)r"


class ResourceAlreadyExists(LocalVolException):
    """Resource already exists."""

    message = "%(kind)s %(name)s already exists"
    code = StatusCode.ALREADY_EXISTS


class ResourceConflict(LocalVolException):
    """Optimistic concurrency conflict; retry with a fresh read."""

    message = "%(kind)s %(name)s was modified concurrently: %(details)s"
    code = StatusCode.ABORTED


class CapacityExceeded(LocalVolException):
    """Not enough free space in the selected volume group or thin pool.

    A placement decision is taken from a capacity snapshot, so callers may
    retry after capacity is rebalanced.
    """

    message = "Requested size %(requested)s is greater than free space %(available)s of %(target)s"
    code = StatusCode.RESOURCE_EXHAUSTED


class ConvergenceTimeout(LocalVolException):
    """The node agent did not converge the logical volume in time."""

    message = "Logical volume %(name)s did not reach size %(size)s after %(attempts)d attempts"
    code = StatusCode.DEADLINE_EXCEEDED


class OperationCancelled(LocalVolException):
    """The caller cancelled the call or its deadline expired."""

    message = "%(operation)s cancelled: %(details)s"
    code = StatusCode.CANCELLED


class DeadlineExceeded(OperationCancelled):
    """The call deadline passed before the operation finished."""

    code = StatusCode.DEADLINE_EXCEEDED


class LogicalVolumeFailed(LocalVolException):
    """The node agent reported a failed logical volume."""

    message = "Logical volume %(name)s failed: %(reason)s"
    code = StatusCode.INTERNAL


class ParametersDecodeError(LocalVolException):
    """Derived storage class parameters cannot be decoded."""

    message = "Unable to decode parameters of storage class %(name)s: %(details)s"
    code = StatusCode.INTERNAL


class ValidationFailed(LocalVolException):
    """A LocalStorageClass does not match the live volume group inventory."""

    message = "Validation failed: %(reasons)s"
    code = StatusCode.FAILED_PRECONDITION


class ForeignStorageClass(LocalVolException):
    """A storage class with the same name belongs to another provisioner."""

    message = "Storage class %(name)s does not belong to %(provisioner)s provisioner"
    code = StatusCode.FAILED_PRECONDITION


class StoreError(LocalVolException):
    """Unexpected resource store failure."""

    message = "Resource store error: %(details)s"
    code = StatusCode.INTERNAL


def attribute(exc: LocalVolException, step: str) -> LocalVolException:
    """Return an error of the same kind naming the failing sub-operation."""
    attributed = exc.__class__(message=f"{step}: {exc.message}")
    attributed.kwargs = exc.kwargs
    return attributed


class APIError(LocalVolException):
    """The localvol API returned an error response."""

    def __init__(self, message, status_code=None, response_data=None):
        super(APIError, self).__init__(message=message)
        self.status_code = status_code
        self.response_data = response_data


class APIConnectionError(APIError):
    """Failed to connect to the localvol API."""


class APITimeout(APIError):
    """API request timed out."""
