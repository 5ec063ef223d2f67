"""
Vertex AI Veo API Wrapper

A thin async client for Google's Veo long-running video generation endpoints
with proper error handling, retry logic, and logging.

Key Features:
- predictLongRunning submission and fetchPredictOperation polling
- Retry logic with exponential backoff for transient HTTP failures
- Provider failures raised as ProviderError
- Logging integration with structlog

The client does not loop or sleep on its own: polling cadence, token refresh
and the poll bound belong to the job orchestrator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog
from tenacity import (
    retry,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

from config import settings
from pipeline.error_handler import ProviderError
from pipeline.models import OperationSnapshot


logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)


def is_transient_http_error(exc: BaseException) -> bool:
    """Network faults, rate limits and 5xx responses are worth another try."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


def stop_after_configured_attempts(setting_name: str):
    """Stop condition whose attempt limit is read from settings on every call."""
    def stop(retry_state) -> bool:
        return retry_state.attempt_number >= max(getattr(settings, setting_name), 1)
    return stop


class GenerationProvider(ABC):
    """
    Abstract interface for an external video generation provider.

    ``submit`` either finishes immediately (``done=True`` with a response) or
    returns the name of a long-running operation that ``poll`` can check.
    """

    @abstractmethod
    async def submit(self, prompt: str, duration_seconds: int, access_token: str) -> OperationSnapshot:
        """
        Start a generation.

        Raises:
            ProviderError: If the provider rejects the request
        """

    @abstractmethod
    async def poll(self, operation_name: str, access_token: str) -> OperationSnapshot:
        """
        Check a long-running operation.

        Raises:
            ProviderError: If the provider cannot be reached or rejects the request
        """


class VeoClient(GenerationProvider):
    """
    Vertex AI Veo client.

    Usage:
        client = VeoClient()
        op = await client.submit("a fox running through snow", 8, token)
        while not op.done:
            op = await client.poll(op.name, fresh_token)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Veo client.

        Args:
            base_url: Publisher model URL. If None, built from settings
            timeout: Request timeout in seconds (default: 60)
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url or settings.veo_base_url
        self.timeout = timeout or settings.VEO_REQUEST_TIMEOUT
        self._http = httpx.AsyncClient(timeout=self.timeout, transport=transport)

        self.logger = logger.bind(service="veo_client")
        self.logger.info(
            "veo_client_initialized",
            model=settings.VEO_MODEL_ID,
            location=settings.GOOGLE_LOCATION,
            timeout=self.timeout,
        )

    @property
    def submit_url(self) -> str:
        return f"{self.base_url}:predictLongRunning"

    @property
    def poll_url(self) -> str:
        return f"{self.base_url}:fetchPredictOperation"

    async def aclose(self) -> None:
        await self._http.aclose()

    @retry(
        stop=stop_after_configured_attempts("VEO_MAX_RETRIES"),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(is_transient_http_error),
        before_sleep=before_sleep_log(retry_logger, logging.INFO),
        reraise=True,
    )
    async def _post(self, url: str, payload: Dict[str, Any], access_token: str) -> Dict[str, Any]:
        response = await self._http.post(
            url,
            json=payload,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response.json()

    async def _call(self, action: str, url: str, payload: Dict[str, Any], access_token: str) -> OperationSnapshot:
        try:
            data = await self._post(url, payload, access_token)
        except httpx.HTTPStatusError as e:
            body = e.response.text[:500]
            self.logger.error(
                "veo_request_rejected",
                action=action,
                status_code=e.response.status_code,
                body=body,
            )
            raise ProviderError(
                f"Veo API error ({e.response.status_code}): {body}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            self.logger.error("veo_request_failed", action=action, error=str(e))
            raise ProviderError(f"Veo API request failed: {type(e).__name__}: {e}")
        except ValueError as e:
            raise ProviderError(f"Veo API returned invalid JSON: {e}")

        if not isinstance(data, dict):
            raise ProviderError("Veo API returned an unexpected payload", details={"payload_type": type(data).__name__})

        return OperationSnapshot.model_validate(data)

    async def submit(self, prompt: str, duration_seconds: int, access_token: str) -> OperationSnapshot:
        payload = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "videoDuration": f"{duration_seconds}s",
            },
        }
        self.logger.info(
            "veo_generation_submitting",
            prompt_length=len(prompt),
            duration_seconds=duration_seconds,
        )

        snapshot = await self._call("submit", self.submit_url, payload, access_token)

        self.logger.info(
            "veo_generation_submitted",
            operation=snapshot.name,
            done=snapshot.done,
        )
        return snapshot

    async def poll(self, operation_name: str, access_token: str) -> OperationSnapshot:
        snapshot = await self._call(
            "poll",
            self.poll_url,
            {"operationName": operation_name},
            access_token,
        )
        self.logger.debug("veo_operation_polled", operation=operation_name, done=snapshot.done)
        return snapshot
