"""
Base class for translation backends.

Every backend exposes translate(text) -> str and raises BackendError with a
classified kind. HTTP failures are classified here, once, so nothing
downstream ever inspects error strings.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import httpx

from epub2zh.config import MAX_TRANSLATE_LENGTH, REQUEST_TIMEOUT
from epub2zh.core.adapters.exceptions import BackendError, BackendErrorKind
from epub2zh.core.chunking import split_text

logger = logging.getLogger(__name__)

QUOTA_MARKERS = ("balance", "余额", "quota", "billing")


def _extract_error_message(body: str) -> str:
    """Pull a structured error message out of a JSON error body."""
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return body[:500]
    if isinstance(data, dict):
        error = data.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str):
            return error
        if data.get('message'):
            return str(data['message'])
    return body[:500]


def _parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    if not headers:
        return None
    value = headers.get('retry-after')
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def classify_http_error(
    backend: str,
    status_code: int,
    body: str = "",
    headers: Optional[Mapping[str, str]] = None
) -> BackendError:
    """
    Map a non-success HTTP response to a BackendError.

    Args:
        backend: Backend name for context
        status_code: HTTP status
        body: Response body text
        headers: Response headers (for Retry-After)

    Returns:
        Classified BackendError (not raised)
    """
    message = _extract_error_message(body)
    lowered = message.lower()
    summary = f"{backend} returned HTTP {status_code}: {message}"

    if status_code == 402 or any(marker in lowered for marker in QUOTA_MARKERS):
        kind = BackendErrorKind.QUOTA_EXHAUSTED
    elif status_code in (401, 403):
        kind = BackendErrorKind.AUTH_MISSING
    elif status_code == 429:
        kind = BackendErrorKind.RATE_LIMITED
    elif status_code >= 500:
        kind = BackendErrorKind.NETWORK
    else:
        kind = BackendErrorKind.MALFORMED_RESPONSE

    return BackendError(
        summary,
        kind=kind,
        backend=backend,
        status_code=status_code,
        retry_after=_parse_retry_after(headers) if kind == BackendErrorKind.RATE_LIMITED else None
    )


def classify_transport_error(backend: str, error: Exception) -> BackendError:
    """Map a connection-level failure (reset, timeout, DNS) to a NETWORK error."""
    return BackendError(
        f"{backend} request failed: {type(error).__name__}: {error}",
        kind=BackendErrorKind.NETWORK,
        backend=backend
    )


class TranslationBackend(ABC):
    """Abstract base class for translation backends"""

    name = "base"

    def __init__(
        self,
        max_length: int = MAX_TRANSLATE_LENGTH,
        timeout: int = REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            max_length: Longest text sent in a single request
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (tests inject a MockTransport here)
        """
        self.max_length = max_length
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.request_count = 0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout)
            )
            self._owns_client = True
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def translate(self, text: str) -> str:
        """
        Translate text, pre-splitting it at sentence boundaries when it is
        longer than max_length.

        Raises:
            BackendError: Classified failure of any piece
        """
        pieces = split_text(text, self.max_length)
        if len(pieces) > 1:
            logger.debug(f"{self.name}: split {len(text)} chars into {len(pieces)} requests")

        results = []
        for piece in pieces:
            if not piece.strip():
                results.append(piece)
                continue
            results.append(await self._translate_piece(piece))
        return "".join(results)

    @abstractmethod
    async def _translate_piece(self, text: str) -> str:
        """Translate one piece no longer than max_length."""
        pass

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and turn every failure into a classified BackendError.
        """
        client = await self._get_client()
        self.request_count += 1
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise classify_transport_error(self.name, e) from e

        if response.status_code >= 400:
            raise classify_http_error(self.name, response.status_code, response.text, response.headers)

        return response

    def _parse_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise BackendError(
                f"{self.name} returned a non-JSON body: {response.text[:200]}",
                kind=BackendErrorKind.MALFORMED_RESPONSE,
                backend=self.name
            ) from e
