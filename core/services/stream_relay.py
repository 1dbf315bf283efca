"""
Stream Relay - Token Stream to Server-Sent Events

Consumes a provider's fragment stream through a bounded queue and writes it
to the client as SSE:

    data: "fragment"      one event per fragment, JSON-encoded
    data: [DONE]          normal completion
    data: {"error": ...}  failure after the headers were sent

A failure before the first fragment is raised from prime() instead, so the
route can still answer with a regular HTTP error status.

States: IDLE -> STREAMING -> COMPLETED | FAILED | CLIENT_DISCONNECTED
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi.responses import StreamingResponse

from core.config import StreamingSettings
from core.errors import AssistantError, ProviderError
from utils.logger import get_logger

logger = get_logger('services.stream_relay')

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DONE_EVENT = "data: [DONE]\n\n"


class StreamState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CLIENT_DISCONNECTED = "client_disconnected"


@dataclass
class StreamSession:
    """State of one streamed completion"""
    state: StreamState = StreamState.IDLE
    accumulated_text: str = ""
    cancelled: bool = False
    error: Optional[AssistantError] = None

    @property
    def finished(self) -> bool:
        return self.state in (
            StreamState.COMPLETED, StreamState.FAILED, StreamState.CLIENT_DISCONNECTED
        )


class _Failure:
    """Provider error travelling through the queue"""

    def __init__(self, error: AssistantError):
        self.error = error


_END = object()
_DISCONNECTED = object()


def format_event(fragment: str) -> str:
    return f"data: {json.dumps(fragment)}\n\n"


def format_error_event(message: str) -> str:
    return f"data: {json.dumps({'error': message})}\n\n"


class StreamRelay:
    """
    Relays one fragment stream to one client.

    The producer task pumps fragments into a bounded queue, so a slow client
    slows the provider read instead of growing memory. Disconnects are
    checked before each write and whenever the queue stays empty for
    disconnect_poll_interval seconds; a disconnect cancels the producer,
    which closes the provider stream.
    """

    def __init__(
        self,
        fragments: AsyncIterator[str],
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        on_finish: Optional[Callable[[StreamSession], Awaitable[None]]] = None,
        settings: Optional[StreamingSettings] = None
    ):
        self.settings = settings or StreamingSettings()
        self.session = StreamSession()
        self.persist_task: Optional[asyncio.Task] = None

        self._fragments = fragments
        self._is_disconnected = is_disconnected
        self._on_finish = on_finish
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=self.settings.queue_size)
        self._pump_task: Optional[asyncio.Task] = None
        self._pending = None
        self._finished_callback = False

    # ===== PRODUCER =====

    async def _pump(self):
        try:
            async for fragment in self._fragments:
                if fragment:
                    await self._queue.put(fragment)
            await self._queue.put(_END)
        except asyncio.CancelledError:
            raise
        except AssistantError as e:
            await self._queue.put(_Failure(e))
        except Exception as e:
            logger.error(f"Unexpected provider stream failure: {e}", exc_info=True)
            await self._queue.put(_Failure(ProviderError(str(e))))
        finally:
            aclose = getattr(self._fragments, "aclose", None)
            if aclose is not None:
                await aclose()

    def _start(self):
        if self._pump_task is None:
            self.session.state = StreamState.STREAMING
            self._pump_task = asyncio.create_task(self._pump())

    def _cancel_pump(self):
        if self._pump_task is not None and not self._pump_task.done():
            self._pump_task.cancel()

    # ===== CONSUMER =====

    async def _client_gone(self) -> bool:
        if self._is_disconnected is None:
            return False
        return await self._is_disconnected()

    async def _next_item(self):
        if self._pending is not None:
            item, self._pending = self._pending, None
            return item

        while True:
            try:
                return await asyncio.wait_for(
                    self._queue.get(),
                    timeout=self.settings.disconnect_poll_interval
                )
            except asyncio.TimeoutError:
                if await self._client_gone():
                    return _DISCONNECTED

    async def prime(self):
        """
        Start the provider stream and wait for its first item.

        Raises:
            AssistantError: the provider failed before producing anything
        """
        self._start()
        item = await self._next_item()
        if isinstance(item, _Failure):
            self.session.state = StreamState.FAILED
            self.session.error = item.error
            await self._pump_task
            logger.warning(f"Stream failed before first fragment: {item.error}")
            raise item.error
        self._pending = item

    async def _finish(self):
        """Hand the session to the completion callback exactly once"""
        if self._finished_callback or self._on_finish is None:
            return
        self._finished_callback = True
        try:
            await self._on_finish(self.session)
        except Exception as e:
            logger.error(f"Stream completion callback failed: {e}", exc_info=True)

    def _mark_disconnected(self):
        self.session.state = StreamState.CLIENT_DISCONNECTED
        self.session.cancelled = True
        self._cancel_pump()
        logger.info(
            f"Client disconnected after {len(self.session.accumulated_text)} chars, "
            f"provider stream cancelled"
        )
        # Runs outside the response task, which may itself be cancelled
        if not self._finished_callback and self._on_finish is not None:
            self.persist_task = asyncio.create_task(self._finish())

    async def events(self) -> AsyncIterator[str]:
        """SSE events for the client"""
        self._start()
        try:
            while True:
                item = await self._next_item()

                if item is _DISCONNECTED:
                    self._mark_disconnected()
                    return

                if item is _END:
                    self.session.state = StreamState.COMPLETED
                    logger.info(f"Stream completed ({len(self.session.accumulated_text)} chars)")
                    await self._finish()
                    yield DONE_EVENT
                    return

                if isinstance(item, _Failure):
                    self.session.state = StreamState.FAILED
                    self.session.error = item.error
                    logger.error(f"Stream failed mid-response: {item.error}")
                    await self._finish()
                    yield format_error_event(item.error.public_message)
                    return

                if await self._client_gone():
                    self._mark_disconnected()
                    return

                self.session.accumulated_text += item
                yield format_event(item)
        finally:
            if not self.session.finished:
                # Generator closed by the server (client went away mid-write)
                self._mark_disconnected()
            self._cancel_pump()

    async def wait_closed(self):
        """Wait until the provider stream is closed and the session handed over"""
        if self._pump_task is not None:
            await asyncio.gather(self._pump_task, return_exceptions=True)
        if self.persist_task is not None:
            await self.persist_task

    def response(self) -> StreamingResponse:
        return StreamingResponse(
            self.events(),
            media_type="text/event-stream",
            headers=SSE_HEADERS
        )
