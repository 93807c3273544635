"""
HTTP client for the external identity provider's user API.

``DELETE {base_url}/users/{handle}`` with a bearer secret. A 2xx means the
account is gone; 404 means it was already gone. Anything else, including
transport errors and timeouts, raises ``ExternalServiceError``; the deletion
saga records it as a soft error. There is no internal retry.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from domain.exceptions import ConfigurationError, ExternalServiceError
from domain.models.deletion import ExternalDeletionOutcome

logger = logging.getLogger(__name__)

SERVICE_NAME = "identity-provider"


class HttpIdentityProvider:

    def __init__(
        self,
        base_url: str,
        secret: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret = secret
        self._timeout = timeout_seconds
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def delete_account(self, handle: str) -> ExternalDeletionOutcome:
        if not self._secret:
            raise ConfigurationError("identity provider secret is not configured")

        url = f"{self._base_url}/users/{handle}"
        try:
            response = self._client.delete(
                url,
                headers={
                    "Authorization": f"Bearer {self._secret}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("Identity provider request for %s failed: %s", handle, exc)
            raise ExternalServiceError(SERVICE_NAME, str(exc) or exc.__class__.__name__) from exc

        if response.is_success:
            logger.info("Identity provider account %s deleted", handle)
            return ExternalDeletionOutcome.ok()
        if response.status_code == 404:
            logger.info("Identity provider account %s already deleted", handle)
            return ExternalDeletionOutcome.not_found()

        message = self._error_message(response)
        logger.error("Identity provider refused deletion of %s: %s", handle, message)
        raise ExternalServiceError(SERVICE_NAME, message)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload: Any = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            errors = payload.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                message = errors[0].get("message")
                if message:
                    return str(message)
        return f"HTTP {response.status_code}: {response.reason_phrase or response.text}"

    def close(self) -> None:
        self._client.close()
