"""Error taxonomy for the receptionist.

None of these reach the webhook caller: the dispatcher converts them into
apology / escalation text and the route always acknowledges the delivery.
"""

from __future__ import annotations


class ReceptionistError(Exception):
    """Base class for every error raised by this package."""


class TransportAuthError(ReceptionistError):
    """The inbound webhook signature did not verify."""


class ModelUnavailableError(ReceptionistError):
    """The completion endpoint could not be reached or returned an error."""


class ToolExecutionError(ReceptionistError):
    """A tool's side-effecting call failed, or its arguments were unusable."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"{tool_name}: {message}")


class NotFoundError(ReceptionistError):
    """A referenced record does not exist upstream."""


class LeadNotFoundError(NotFoundError):
    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Lead with phone {phone} not found")


class GoogleAPIError(ReceptionistError):
    """Raised when a Google REST call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
