"""Error kinds raised by the discovery-aware API client."""

from discovery_client.models import ApiResponse


class ApiClientError(RuntimeError):
    """Base class for failures when communicating with downstream services."""


class TransportError(ApiClientError):
    """The request produced no response (connection failure, timeout, ...)."""


class ResponseError(ApiClientError):
    """The service answered, but not with a 2xx status."""

    def __init__(self, message: str, response: ApiResponse) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code


class ClientError(ResponseError):
    """4xx response; never retried."""


class ServerError(ResponseError):
    """5xx response; retried while the retry budget allows."""


class ResolutionError(ApiClientError):
    """Discovery lookup failed. Absorbed by the resolver via a fallback map."""


class UsageError(ApiClientError, ValueError):
    """A request descriptor lacks information required to build a request."""


def error_for_response(message: str, response: ApiResponse) -> ResponseError:
    """Pick the error class matching the response status."""
    if 400 <= response.status_code <= 499:
        return ClientError(message, response)
    if 500 <= response.status_code <= 599:
        return ServerError(message, response)
    return ResponseError(message, response)
