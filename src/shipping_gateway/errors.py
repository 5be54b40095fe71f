"""
Error taxonomy for the gateway pipelines.

Every failure raised by a pipeline stage derives from ``GatewayError`` so the
HTTP layer can catch it at the request boundary and turn it into an
``{error, details}`` response. ``details`` mirrors the underlying failure:
the remote API error body when one exists, otherwise the local message.
"""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for all request-scoped pipeline failures."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else message


class AuthError(GatewayError):
    """The identity endpoint rejected the credentials or was unreachable."""


class GraphAPIError(GatewayError):
    """The list-store API answered with an error or could not be reached."""

    def __init__(self, message: str, details: Any = None, remote_status: Optional[int] = None) -> None:
        super().__init__(message, details)
        self.remote_status = remote_status


class NotFoundError(GraphAPIError):
    """The list-store API reported that the requested resource does not exist."""


class ListNotFoundError(GatewayError):
    """No list under the resolved site carries the requested display name."""

    def __init__(self, list_name: str) -> None:
        super().__init__(f"List '{list_name}' not found")
        self.list_name = list_name


class MissingFieldError(GatewayError):
    """A field required by a pipeline is absent from an item's field bag."""

    status_code = 404

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Field '{field_name}' not found in item")
        self.field_name = field_name


class RenderError(GatewayError):
    """The document could not be generated."""


class DeliveryError(GatewayError):
    """The email could not be handed to the mail relay."""
