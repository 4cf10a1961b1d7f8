"""
NoteVault Backend — Exceptions
================================

What:  The failure modes of the note API as one exception hierarchy.
How:   Every error carries a client-safe `message` and a `context` dict for
       logs. The handlers in main.py choose the status code by class.
Who:   Raised by the auth dependency, NoteService and SQLNoteStore.

    NoteVaultError
    ├── ValidationError      400  input the client can fix
    ├── UnauthorizedError    401  no usable bearer token
    ├── ResourceError
    │   ├── ForbiddenError   403  note exists but belongs to someone else
    │   └── NotFoundError    404  no such note (or an id that cannot exist)
    └── StoreError           500  persistence failed; details are logged only
"""

from typing import Any, Dict, Optional


class NoteVaultError(Exception):
    """
    Base class for application errors.

    Attributes:
        message:  safe to put in a response body
        context:  extra fields for the server log
    """

    def __init__(self, message: str = "Something went wrong", context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})


class ValidationError(NoteVaultError):
    """
    Input rejected by a business rule (pydantic shape errors are separate).

    Response body:
        {"error": "validation_error", "message": "Title is required",
         "details": {"field": "title"}, "request_id": "…"}
    """

    def __init__(
        self,
        message: str = "Invalid input",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.field = field
        if field:
            self.context["field"] = field


class UnauthorizedError(NoteVaultError):
    """Missing header, wrong scheme, bad signature, expired token or no subject."""

    def __init__(self, message: str = "Authentication required", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)


class ResourceError(NoteVaultError):
    """An error about one addressed resource; type and id go into `context`."""

    def __init__(
        self,
        message: str,
        resource: str,
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.resource = resource
        self.resource_id = resource_id
        self.context["resource"] = resource
        if resource_id:
            self.context["resource_id"] = resource_id


class ForbiddenError(ResourceError):
    """
    The caller is authenticated but is not the owner.

    The message is a bare "Forbidden"; the real owner is never echoed.
    """

    def __init__(self, resource: str = "note", resource_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__("Forbidden", resource, resource_id, context)


class NotFoundError(ResourceError):
    def __init__(self, resource: str = "note", resource_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        else:
            message = f"No such {resource}"
        super().__init__(message, resource, resource_id, context)


class StoreError(NoteVaultError):
    """
    The note store failed: connection loss, constraint violation, deadlock.

    Clients always get the generic message; `context` (operation name and
    driver error type) is for the log.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
