"""Status definitions and exceptions for FinanceFlow.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., StoreReadFailedException) for error handling in services
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    ConfigNotFound = enum.auto()
    ConfigInvalid = enum.auto()
    ProjectIdNotConfigured = enum.auto()

    # Authentication status
    ClientSecretNotFound = enum.auto()
    ClientSecretInvalid = enum.auto()
    CredsInvalid = enum.auto()
    NotAuthenticated = enum.auto()
    IdentityAbsent = enum.auto()

    # Store status
    ServiceUnavailable = enum.auto()
    StoreReadFailed = enum.auto()

    # Export status
    DeliveryFailed = enum.auto()
    ExportInterrupted = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.ConfigNotFound: 'Could not find the configuration file.',
    Status.ConfigInvalid: 'The configuration seems to be incomplete, or contains invalid values.',
    Status.ProjectIdNotConfigured: 'Could not find a valid project id. Have you set up the store project id in the settings?',

    Status.ClientSecretNotFound: 'Could not find the google client secret. Have you set up a valid Google client secret?',
    Status.ClientSecretInvalid: 'Could not verify the client secret. Have you set up a valid Google client secret?',
    Status.CredsInvalid: 'Could not verify the credentials. Please sign in again to your Google account.',
    Status.NotAuthenticated: 'Authentication error. Try signing in again to your Google account.',
    Status.IdentityAbsent: 'No signed-in user. Please sign in first.',

    Status.ServiceUnavailable: 'The data store is unavailable. Please check your connection.',
    Status.StoreReadFailed: 'Could not read your data from the store.',

    Status.DeliveryFailed: 'Could not save the exported file.',
    Status.ExportInterrupted: 'The export was stopped before it finished. Nothing was saved.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in FinanceFlow.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..core.signals import signals
        signals.error.emit(message or self.status_message)


class ConfigNotFoundException(BaseStatusException):
    """Exception raised when the configuration file cannot be found."""
    status = Status.ConfigNotFound


class ConfigInvalidException(BaseStatusException):
    """Exception raised when the configuration is invalid or malformed."""
    status = Status.ConfigInvalid


class ProjectIdNotConfiguredException(BaseStatusException):
    """Exception raised when the store project id is not configured in settings."""
    status = Status.ProjectIdNotConfigured


class ClientSecretNotFoundException(BaseStatusException):
    """Exception raised when the Google OAuth client secret file cannot be found."""
    status = Status.ClientSecretNotFound


class ClientSecretInvalidException(BaseStatusException):
    """Exception raised when the Google OAuth client secret is invalid or malformed."""
    status = Status.ClientSecretInvalid


class CredsInvalidException(BaseStatusException):
    """Exception raised when stored Google credentials are invalid or expired."""
    status = Status.CredsInvalid


class AuthenticationExceptionException(BaseStatusException):
    """Exception raised when user is not authenticated with Google services."""
    status = Status.NotAuthenticated


class IdentityAbsentException(BaseStatusException):
    """Exception raised when an operation needs a signed-in owner but none is present."""
    status = Status.IdentityAbsent


class ServiceUnavailableException(BaseStatusException):
    """Exception raised when the remote store service is unavailable."""
    status = Status.ServiceUnavailable


class StoreReadFailedException(BaseStatusException):
    """Exception raised when a one-shot collection read fails."""
    status = Status.StoreReadFailed


class DeliveryFailedException(BaseStatusException):
    """Exception raised when the delivery sink cannot materialize an export."""
    status = Status.DeliveryFailed


class ExportInterruptedException(BaseStatusException):
    """Exception raised when an export is asked to stop before it delivers."""
    status = Status.ExportInterrupted
