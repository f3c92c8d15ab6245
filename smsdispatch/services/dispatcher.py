from __future__ import annotations
from typing import Dict, List, Tuple
import httpx
import logging

from ..clients.base import BodyType, HTTPRequestSpec
from ..clients.result import SendResult
from ..core.settings import get_settings
from ..errors import TransportError

logger = logging.getLogger("smsdispatch.dispatcher")

_DEFAULT_CONTENT_TYPES = {
    BodyType.FORM: "application/x-www-form-urlencoded",
    BodyType.JSON: "application/json",
}


class HTTPDispatcher:
    """Executes `HTTPRequestSpec`s on one shared `httpx.AsyncClient`."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float | None = None,
        max_body_bytes: int | None = None,
        user_agent: str | None = None,
    ):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.max_body_bytes = max_body_bytes if max_body_bytes is not None else settings.MAX_RESPONSE_BYTES
        self.user_agent = user_agent or settings.USER_AGENT
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=self.timeout)

    def build_headers(self, spec: HTTPRequestSpec) -> Dict[str, str]:
        headers: Dict[str, str] = {"User-Agent": self.user_agent}
        default_ct = _DEFAULT_CONTENT_TYPES.get(spec.body_type)
        if default_ct:
            headers["Content-Type"] = default_ct
        for key, value in spec.headers.items():
            for existing in [h for h in headers if h.lower() == key.lower()]:
                del headers[existing]
            headers[key] = value
        return headers

    @staticmethod
    def build_params(spec: HTTPRequestSpec) -> List[Tuple[str, str]]:
        return [(key, value) for key, values in spec.query_params.items() for value in values]

    async def execute(self, spec: HTTPRequestSpec, *, provider: str = "", deadline_managed: bool = False) -> SendResult:
        """Send one request and read the bounded body.

        With `deadline_managed=True` the caller enforces an overall deadline, so
        the client's own per-request timeout is lifted.
        """
        kwargs = {
            "headers": self.build_headers(spec),
            "params": self.build_params(spec) or None,
            "content": spec.body or None,
        }
        if deadline_managed:
            kwargs["timeout"] = None
        try:
            async with self.client.stream(spec.method, spec.url, **kwargs) as resp:
                body = await self._read_bounded(resp, provider)
                return SendResult(status_code=resp.status_code, headers=dict(resp.headers), body=body)
        except httpx.TimeoutException as e:
            logger.warning("%s request to %s timed out: %s", provider, spec.url, e)
            raise TransportError(f"request timed out: {e!r}", provider=provider, code="timeout", retryable=True) from e
        except httpx.InvalidURL as e:
            raise TransportError(f"invalid request url {spec.url!r}: {e}", provider=provider, code="invalid_url") from e
        except httpx.HTTPError as e:
            logger.warning("%s request to %s failed: %s", provider, spec.url, e)
            raise TransportError(f"request failed: {e!r}", provider=provider, code="network_error", retryable=True) from e

    async def _read_bounded(self, resp: httpx.Response, provider: str) -> bytes:
        chunks: List[bytes] = []
        size = 0
        async for chunk in resp.aiter_bytes():
            size += len(chunk)
            if size > self.max_body_bytes:
                raise TransportError(
                    f"response body exceeds {self.max_body_bytes} bytes",
                    provider=provider,
                    code="response_too_large",
                    status_code=resp.status_code,
                )
            chunks.append(chunk)
        return b"".join(chunks)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


__all__ = ["HTTPDispatcher"]
