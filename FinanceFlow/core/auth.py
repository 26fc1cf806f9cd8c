"""
Google OAuth2 authentication and credential management.

Provides the credential manager used by the Firestore client and the
interactive installed-app sign-in flow.
"""

import logging
import threading
from typing import Optional

import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.credentials
import google_auth_oauthlib.flow

from ..status import status

DEFAULT_SCOPES = ['https://www.googleapis.com/auth/datastore', ]
AUTH_TIMEOUT: int = 60


class AuthExpiredError(Exception):
    """Raised when credentials have expired and require interactive refresh."""
    pass


class AuthManager:
    """Manages OAuth2 credentials with thread-safe refresh.

    Args:
        settings: The settings API providing credential and client secret paths.
            Defaults to the application settings.
    """

    def __init__(self, settings=None):
        if settings is None:
            from ..settings import lib
            settings = lib.settings

        self.settings = settings
        self._lock = threading.Lock()
        self._creds: Optional[google.oauth2.credentials.Credentials] = None

    def get_valid_credentials(self) -> google.oauth2.credentials.Credentials:
        """
        Return valid credentials without any user interaction.

        Safe to call from worker threads.

        Raises:
            AuthExpiredError: if no credentials exist or a full interactive flow is required.
            status.AuthenticationExceptionException: if an auto-refresh fails.
            status.CredsInvalidException: if stored credentials are corrupt.
        """
        with self._lock:
            if self._creds is None:
                if not self.settings.creds_path.exists():
                    raise AuthExpiredError(
                        'No credentials found; interactive authentication required')
                try:
                    self._creds = google.oauth2.credentials.Credentials.from_authorized_user_file(
                        str(self.settings.creds_path))
                except (ValueError, KeyError) as ex:
                    # Corrupt credentials are removed so the next sign-in starts clean
                    self.settings.creds_path.unlink(missing_ok=True)
                    raise status.CredsInvalidException('Failed to load credentials') from ex

            if self._creds.expired:
                if self._creds.refresh_token:
                    try:
                        self._creds.refresh(
                            google.auth.transport.requests.Request())
                        save_creds(self._creds, self.settings)
                    except google.auth.exceptions.RefreshError as ex:
                        raise status.AuthenticationExceptionException(
                            'Failed to auto-refresh credentials') from ex
                else:
                    raise AuthExpiredError(
                        'Credentials expired; interactive authentication required')

            return self._creds

    def refresh_credentials_interactive(self) -> google.oauth2.credentials.Credentials:
        """Run the interactive OAuth flow and cache the resulting credentials."""
        with self._lock:
            creds = authenticate(self.settings)
            save_creds(creds, self.settings)
            self._creds = creds
            return creds

    def sign_out(self) -> None:
        """
        Forget the cached credentials and delete the stored token file.
        """
        with self._lock:
            self._creds = None
            if self.settings.creds_path.exists():
                logging.debug(f'Deleting {self.settings.creds_path}...')
                self.settings.creds_path.unlink()
                logging.debug('Successfully signed out.')
            else:
                logging.debug('No credentials file found. No action taken.')


def save_creds(creds: google.oauth2.credentials.Credentials, settings) -> None:
    """
    Save OAuth2 credentials to the configured token file.

    Args:
        creds: Credentials to save.
        settings: The settings API providing the token file path.
    """
    with open(settings.creds_path, 'w', encoding='utf-8') as token_file:
        token_file.write(creds.to_json())

    logging.debug(f'Credentials saved to {settings.creds_path}.')


def authenticate(settings, timeout_seconds: int = AUTH_TIMEOUT) -> google.oauth2.credentials.Credentials:
    """
    Run the installed-app OAuth flow in the user's browser.

    Args:
        settings: The settings API providing the client secret.
        timeout_seconds: How long to wait for the browser redirect.

    Returns:
        google.oauth2.credentials.Credentials: The authenticated credentials.

    Raises:
        status.ClientSecretNotFoundException: If the client secret file is not found.
        status.AuthenticationExceptionException: If authentication fails or is cancelled.
        status.CredsInvalidException: If credentials returned are invalid.
    """
    if not settings.client_secret_path.exists():
        raise status.ClientSecretNotFoundException

    settings.validate_client_secret()
    client_config = settings.get_section('client_secret')

    logging.debug('Starting new OAuth flow...')
    flow = google_auth_oauthlib.flow.InstalledAppFlow.from_client_config(client_config, scopes=DEFAULT_SCOPES)
    try:
        creds = flow.run_local_server(port=0, timeout_seconds=timeout_seconds)
    except Exception as ex:
        raise status.AuthenticationExceptionException(f'OAuth flow failed: {ex}') from ex

    if not creds:
        raise status.AuthenticationExceptionException('Authentication was cancelled or timed out.')
    if not creds.valid:
        raise status.CredsInvalidException('Invalid credentials returned from OAuth flow.')

    logging.debug('OAuth flow completed.')
    return creds
