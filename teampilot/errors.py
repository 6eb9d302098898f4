"""
Error taxonomy for TeamPilot.

Every error raised inside a turn is caught by the turn pipeline and turned
into a user-visible reply; none of these are allowed to crash the process.
"""

from typing import Any, Optional


class TeamPilotError(Exception):
    """Base class for all TeamPilot errors."""

    def user_message(self) -> str:
        """Text shown to the user when this error ends a turn."""
        return str(self)


class UpstreamError(TeamPilotError):
    """The completion endpoint did not return a usable completion."""

    def __init__(self, message: str, body: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.body = body
        self.status_code = status_code


class IntegrationError(TeamPilotError):
    """Base class for issue-tracker / CRM failures."""

    def __init__(self, system: str, message: str):
        super().__init__(message)
        self.system = system


class IntegrationNotConfigured(IntegrationError):
    """No credential record exists for the requested integration."""

    def __init__(self, system: str, message: Optional[str] = None):
        super().__init__(
            system,
            message or f"{system.capitalize()} credentials not configured. Please set up the {system.capitalize()} integration first."
        )


class IntegrationAuthExpired(IntegrationError):
    """The integration rejected the stored session; a refresh may fix it."""


class IntegrationRequestFailed(IntegrationError):
    """The remote system answered with a 4xx/5xx."""

    def __init__(self, system: str, message: str, status_code: Optional[int] = None):
        super().__init__(system, message)
        self.status_code = status_code


class StoreUnavailable(TeamPilotError):
    """The key-value store could not be reached."""
