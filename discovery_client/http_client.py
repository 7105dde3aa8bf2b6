"""httpx-backed transport that surfaces every status code as a result."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from discovery_client.errors import TransportError
from discovery_client.models import ApiResponse, ResponseFormat
from discovery_client.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json, text/plain, */*"}


def create_async_client(settings: Settings) -> httpx.AsyncClient:
    """
    Build an AsyncClient for talking to discovered services.

    Redirects are not followed: 3xx responses are handed back to the retry
    engine like any other status.
    """
    return httpx.AsyncClient(
        timeout=settings.api_timeout,
        headers=DEFAULT_HEADERS,
        follow_redirects=False,
    )


def _form_parts(data: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    fields: dict[str, Any] = {}
    files: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, (bytes, tuple)):
            files[key] = value
        else:
            fields[key] = value
    return fields, files


def _decode_body(response: httpx.Response, response_format: ResponseFormat) -> Any:
    if response_format == "bytes":
        return response.content
    if response_format == "text":
        return response.text
    if not response.content:
        return None
    if "json" not in response.headers.get("content-type", ""):
        return response.text
    try:
        return response.json()
    except ValueError:
        # Covers malformed JSON and bodies that are not valid UTF-8.
        logger.warning(
            "Response declared JSON but could not be decoded",
            extra={"url": str(response.url), "status_code": response.status_code},
        )
        return response.text


class HttpxTransport:
    """Adapter issuing one HTTP call per ``send``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpxTransport":
        return cls(create_async_client(settings))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        data: Any = None,
        params: Mapping[str, Any] | None = None,
        form: bool = False,
        response_format: ResponseFormat = "json",
    ) -> ApiResponse:
        """Issue the request; raise ``TransportError`` only when no response arrived."""
        kwargs: dict[str, Any] = {"headers": dict(headers or {}), "params": dict(params or {})}
        if data is not None:
            if form and isinstance(data, Mapping):
                fields, files = _form_parts(data)
                kwargs["data"] = fields
                if files:
                    kwargs["files"] = files
            elif isinstance(data, (str, bytes)):
                kwargs["content"] = data
            else:
                kwargs["json"] = data

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Request timed out", extra={"method": method, "url": url}, exc_info=exc)
            raise TransportError(f"Request timed out ({method} {url}).") from exc
        except httpx.RequestError as exc:
            logger.error("Request failed", extra={"method": method, "url": url}, exc_info=exc)
            raise TransportError(f"Request failed ({method} {url}): {exc!s}") from exc

        return ApiResponse(
            status_code=response.status_code,
            data=_decode_body(response, response_format),
            headers=dict(response.headers),
            url=str(response.url),
        )
