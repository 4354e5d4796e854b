from __future__ import annotations

import logging
import time

import httpx

from transfer_board.domain.models.transfer import TransferRecord
from transfer_board.infrastructure.http.payloads import transfers_from_response

log = logging.getLogger(__name__)

FETCH_FAILED_MESSAGE = "Failed to fetch data. Ensure you are logged into your Livo account in this browser."


class TransferSourceError(RuntimeError):
    pass


class TransferApiClient:
    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Transfers API URL is not configured.")
        self._url = url
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            headers=self._headers,
            transport=self._transport,
        )
        log.info("Transfers API client started url=%s timeout=%s", self._url, self._timeout)

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        log.info("Transfers API client closed")

    async def fetch_pending(self) -> list[TransferRecord]:
        if self._client is None:
            await self.start()
        assert self._client is not None
        started_at = time.perf_counter()
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise TransferSourceError(
                f"{FETCH_FAILED_MESSAGE} (HTTP {exc.response.status_code})"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransferSourceError(f"{FETCH_FAILED_MESSAGE} ({type(exc).__name__}: {exc})") from exc
        except ValueError as exc:
            raise TransferSourceError(f"{FETCH_FAILED_MESSAGE} (response is not JSON)") from exc

        try:
            records = transfers_from_response(body)
        except ValueError as exc:
            raise TransferSourceError(f"Transfers API returned a malformed transfer: {exc}") from exc
        log.info(
            "Transfers fetched count=%s status=%s elapsed_ms=%s",
            len(records),
            response.status_code,
            int((time.perf_counter() - started_at) * 1000),
        )
        return records
