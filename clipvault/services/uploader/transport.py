"""Resilient object transfer.

Moves a blob to a presigned destination URL with a single HTTP PUT.
Strategies are tried in order:
1. StreamingPutStrategy: streamed body with progress reporting and an
   overall deadline
2. SimplePutStrategy: plain request/response PUT without progress

Network, timeout and cross-origin failures fall through to the next
strategy; a server rejection or a caller cancel does not. When every
strategy fails, one TransportError carries the merged diagnostics.
"""

import asyncio
from abc import ABC, abstractmethod

import httpx

from clipvault.config.upload import TransportConfig
from clipvault.core.exceptions import (
    CORS_REMEDIATION_HINT,
    TransportError,
    TransportErrorKind,
)
from clipvault.core.logging import get_logger
from clipvault.core.types import ProgressCallback
from clipvault.infrastructure.http_client import HTTPClient
from clipvault.services.media.blob import MediaBlob

logger = get_logger(__name__)

FALLBACK_KINDS = frozenset(
    {
        TransportErrorKind.NETWORK,
        TransportErrorKind.TIMEOUT,
        TransportErrorKind.CORS_BLOCKED,
    }
)


def classify_transport_failure(
    error: httpx.TransportError,
    body_sent: bool,
    url: str,
) -> TransportError:
    """Map an httpx transport failure to a TransportError.

    A peer that takes the whole body and then closes without any HTTP
    status is treated as a cross-origin/access policy block, which is
    what a misconfigured bucket policy looks like from the client.

    Args:
        error: httpx failure
        body_sent: Whether the whole body was handed to the connection
        url: Destination URL

    Returns:
        Classified TransportError
    """
    if isinstance(error, httpx.TimeoutException):
        return TransportError(TransportErrorKind.TIMEOUT, str(error) or "Request timed out", endpoint=url)

    if body_sent and isinstance(error, httpx.RemoteProtocolError | httpx.ReadError):
        return TransportError(
            TransportErrorKind.CORS_BLOCKED,
            str(error) or "Connection closed without a response",
            endpoint=url,
            hint=CORS_REMEDIATION_HINT,
        )

    return TransportError(
        TransportErrorKind.NETWORK,
        str(error) or error.__class__.__name__,
        endpoint=url,
    )


class TransferStrategy(ABC):
    """One way of PUTting a blob to a destination URL."""

    name: str = "base"

    def __init__(self, http: HTTPClient, config: TransportConfig) -> None:
        self.http = http
        self.config = config

    @abstractmethod
    async def put(
        self,
        blob: MediaBlob,
        destination_url: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Transfer the blob.

        Raises:
            TransportError: If the transfer fails
        """

    def _headers(self, blob: MediaBlob) -> dict[str, str]:
        return {
            "Content-Type": blob.content_type,
            "Content-Length": str(blob.size_bytes),
        }

    def _check_response(self, response: httpx.Response, destination_url: str) -> None:
        if response.is_success:
            return
        body = response.text[: self.config.detail_max_chars]
        raise TransportError(
            TransportErrorKind.SERVER_REJECTED,
            body or response.reason_phrase or f"HTTP {response.status_code}",
            status_code=response.status_code,
            endpoint=destination_url,
        )


class StreamingPutStrategy(TransferStrategy):
    """Streamed PUT reporting progress as chunks are handed off."""

    name = "streaming"

    async def put(
        self,
        blob: MediaBlob,
        destination_url: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        body_sent = False
        total = blob.size_bytes

        async def body():
            nonlocal body_sent
            sent = 0
            async for chunk in blob.iter_chunks(self.config.chunk_size):
                yield chunk
                # Resumed only after the connection took the chunk
                sent += len(chunk)
                if on_progress and total:
                    on_progress(min(sent * 100 / total, 100.0))
            body_sent = True

        timeout = self.config.timeout_seconds
        try:
            response = await asyncio.wait_for(
                self.http.put(
                    destination_url,
                    content=body(),
                    headers=self._headers(blob),
                    timeout=httpx.Timeout(timeout),
                ),
                timeout,
            )
        except TimeoutError as e:
            raise TransportError(
                TransportErrorKind.TIMEOUT,
                f"No response within {timeout}s",
                endpoint=destination_url,
            ) from e
        except httpx.TransportError as e:
            raise classify_transport_failure(e, body_sent, destination_url) from e

        self._check_response(response, destination_url)


class SimplePutStrategy(TransferStrategy):
    """Plain request/response PUT, no progress.

    The body is still streamed from the blob so large files are never
    held in memory.
    """

    name = "simple"

    async def put(
        self,
        blob: MediaBlob,
        destination_url: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        body_sent = False

        async def body():
            nonlocal body_sent
            async for chunk in blob.iter_chunks(self.config.chunk_size):
                yield chunk
            body_sent = True

        try:
            response = await self.http.put(
                destination_url,
                content=body(),
                headers=self._headers(blob),
                timeout=httpx.Timeout(self.config.timeout_seconds),
            )
        except httpx.TransportError as e:
            raise classify_transport_failure(e, body_sent, destination_url) from e

        self._check_response(response, destination_url)


class ResilientTransport:
    """Send blobs to presigned URLs with fallback and cancellation.

    At most one send is in flight per instance; cancel() aborts it and
    the pending send() resolves with a TransportError of kind CANCELLED.

    Example:
        >>> transport = ResilientTransport()
        >>> await transport.send(blob, upload_url, on_progress=print)
    """

    def __init__(
        self,
        http: HTTPClient | None = None,
        config: TransportConfig | None = None,
        strategies: list[TransferStrategy] | None = None,
    ) -> None:
        """Initialize ResilientTransport.

        Args:
            http: HTTP client used for object-store requests
            config: Transport configuration
            strategies: Ordered strategies (default: streaming, then simple)
        """
        self.config = config or TransportConfig()
        self.http = http or HTTPClient(timeout=self.config.timeout_seconds)
        self.strategies = strategies or [
            StreamingPutStrategy(self.http, self.config),
            SimplePutStrategy(self.http, self.config),
        ]
        self._in_flight: asyncio.Task[None] | None = None
        self._cancel_requested = False

    @property
    def is_sending(self) -> bool:
        return self._in_flight is not None

    async def send(
        self,
        blob: MediaBlob,
        destination_url: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Transfer a blob, falling back between strategies.

        Args:
            blob: Bytes to send
            destination_url: Presigned PUT URL
            on_progress: Receives percentages in [0, 100]

        Raises:
            TransportError: If every strategy failed or the send was cancelled
            RuntimeError: If a send is already in flight
        """
        if self._in_flight is not None:
            raise RuntimeError("A transfer is already in flight")

        self._cancel_requested = False
        task = asyncio.ensure_future(self._send_with_fallback(blob, destination_url, on_progress))
        self._in_flight = task
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._cancel_requested and not (current and current.cancelling()):
                raise TransportError(
                    TransportErrorKind.CANCELLED,
                    "Transfer cancelled",
                    endpoint=destination_url,
                ) from None
            raise
        finally:
            self._in_flight = None
            self._cancel_requested = False

    def cancel(self) -> bool:
        """Abort the in-flight send, if any.

        Returns:
            True if a send was cancelled
        """
        if self._in_flight is None or self._in_flight.done():
            return False
        self._cancel_requested = True
        self._in_flight.cancel()
        logger.info("Transfer cancel requested")
        return True

    async def _send_with_fallback(
        self,
        blob: MediaBlob,
        destination_url: str,
        on_progress: ProgressCallback | None,
    ) -> None:
        failures: list[tuple[str, TransportError]] = []

        for strategy in self.strategies:
            try:
                await strategy.put(blob, destination_url, on_progress)
            except TransportError as e:
                failures.append((strategy.name, e))
                logger.warning(
                    "Transfer strategy failed",
                    strategy=strategy.name,
                    kind=e.kind.value,
                    detail=e.detail,
                    file=blob.name,
                )
                if e.kind not in FALLBACK_KINDS:
                    break
                continue

            if failures:
                logger.info("Transfer succeeded after fallback", strategy=strategy.name, file=blob.name)
            if on_progress:
                on_progress(100.0)
            return

        raise self._merge_failures(failures, destination_url)

    @staticmethod
    def _merge_failures(
        failures: list[tuple[str, TransportError]],
        destination_url: str,
    ) -> TransportError:
        if len(failures) == 1:
            return failures[0][1]

        errors = [e for _, e in failures]
        last = errors[-1]
        kind = last.kind
        # A policy block seen on any strategy outranks later connection failures
        if kind is not TransportErrorKind.SERVER_REJECTED and any(
            e.kind is TransportErrorKind.CORS_BLOCKED for e in errors
        ):
            kind = TransportErrorKind.CORS_BLOCKED

        detail = "; ".join(f"{name}: {e.detail}" for name, e in failures)
        hint = next((e.hint for e in errors if e.hint), None)
        return TransportError(
            kind,
            detail,
            status_code=last.status_code,
            endpoint=destination_url,
            hint=hint if kind is TransportErrorKind.CORS_BLOCKED else None,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.http.close()


__all__ = [
    "TransferStrategy",
    "StreamingPutStrategy",
    "SimplePutStrategy",
    "ResilientTransport",
    "classify_transport_failure",
]
