"""Generic authenticated HTTP transport for the ElevenLabs REST API."""

import logging
from typing import Any, Mapping

import httpx

from .config import ClientConfig
from .errors import APIError, RequestTimeoutError, error_for_status

logger = logging.getLogger(__name__)


class HTTPTransport:
    """Async request primitive shared by the REST endpoint layer.

    Returns the parsed body of a successful response, or raises the typed
    error that matches the status code.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Client configuration (credentials, base URL, timeout).
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                **config.auth_headers,
                "User-Agent": config.user_agent,
            },
            timeout=config.timeout,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send one request and return the parsed body.

        Args:
            method: HTTP method.
            path: API path relative to the base URL, e.g. "/v1/voices".
            params: Query parameters; None values are dropped.
            json: JSON request body.
            data: Form fields (multipart when combined with files).
            files: Multipart file parts.
            headers: Extra headers for this request.

        Returns:
            Parsed JSON for JSON responses, raw bytes otherwise.

        Raises:
            APIError: Or one of its subclasses, for non-2xx responses and
                transport failures.
        """
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        try:
            response = await self._client.request(
                method,
                path,
                params=params or None,
                json=json,
                data=data,
                files=files,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timed out: {e}", status_code=408) from e
        except httpx.HTTPError as e:
            raise APIError(f"HTTP error during request: {e}") from e

        if not response.is_success:
            error = error_for_status(response.status_code, response.content)
            logger.debug(f"{method} {path} failed with {response.status_code}: {error.message}")
            raise error

        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            return response.json()
        return response.content

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def delete(self, path: str, json: Any = None) -> Any:
        return await self.request("DELETE", path, json=json)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
