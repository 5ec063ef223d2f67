"""
Access tokens for Google Cloud APIs (Vertex AI Veo, Text-to-Speech).

Tokens come from a service-account key file. Callers ask for a token before
every network call; the provider refreshes it only when it has expired, so
long polling loops never run with a stale token.
"""

import asyncio
import os
import threading
from abc import ABC, abstractmethod
from typing import Optional

import google.auth.transport.requests
import structlog
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from config import settings
from pipeline.error_handler import AuthenticationError, ConfigurationError

logger = structlog.get_logger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class AccessTokenProvider(ABC):
    """Source of bearer tokens for provider calls."""

    @abstractmethod
    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If credentials are missing
        """

    @abstractmethod
    async def get_access_token(self) -> str:
        """
        Return a currently valid bearer token.

        Raises:
            AuthenticationError: If a token cannot be obtained
        """


class GoogleAccessTokenProvider(AccessTokenProvider):
    """
    Service-account token provider.

    Example:
        >>> provider = GoogleAccessTokenProvider("/secrets/sa.json")
        >>> token = await provider.get_access_token()
    """

    def __init__(self, key_file_path: Optional[str] = None, scopes: Optional[list] = None):
        self.key_file_path = key_file_path if key_file_path is not None else settings.GOOGLE_APPLICATION_CREDENTIALS
        self.scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self._credentials: Optional[service_account.Credentials] = None
        self._lock = threading.Lock()

        logger.info(
            "google_auth_initialized",
            has_key_file=bool(self.key_file_path),
        )

    def ensure_configured(self) -> None:
        if not self.key_file_path:
            raise ConfigurationError(
                "Google Service Account Key not configured. "
                "Check GOOGLE_APPLICATION_CREDENTIALS in .env"
            )
        if not os.path.exists(self.key_file_path):
            raise ConfigurationError(
                f"Google Service Account Key file not found: {self.key_file_path}",
                {"key_file_path": self.key_file_path}
            )

    def _load_credentials(self) -> service_account.Credentials:
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_file(
                self.key_file_path,
                scopes=self.scopes,
            )
        return self._credentials

    def _refresh_token(self) -> str:
        with self._lock:
            credentials = self._load_credentials()
            if not credentials.valid:
                credentials.refresh(google.auth.transport.requests.Request())
                logger.debug("google_access_token_refreshed", expiry=str(credentials.expiry))
            return credentials.token

    async def get_access_token(self) -> str:
        self.ensure_configured()
        try:
            token = await asyncio.to_thread(self._refresh_token)
        except (GoogleAuthError, ValueError, OSError) as e:
            logger.error("google_access_token_failed", error=str(e))
            raise AuthenticationError(f"Failed to get access token: {e}")

        if not token:
            raise AuthenticationError("Failed to get access token")
        return token
