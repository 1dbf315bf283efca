"""
Completion Service

Validates the conversation, adds document context, routes to a provider and
returns the reply, either whole or as a stream relay. Assistant replies are
stored in the chat history when the request names a chat and a user.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple, Callable, Awaitable

from core.ai.base import AIMessage, validate_conversation, inject_context
from core.ai.credentials import ClientKeys
from core.ai.router import CompletionRouter, RoutedCompletion
from core.config import StreamingSettings
from core.services.stream_relay import StreamRelay, StreamSession, StreamState
from modules.rag.retriever import Retriever
from modules.storage.sqlite_store import SQLiteStore
from utils.logger import get_logger, log_conversation

logger = get_logger('services.completion')


@dataclass
class CompletionRequest:
    """One chat completion, already parsed and with classified keys"""
    messages: List[AIMessage]
    model: str
    client_keys: ClientKeys = field(default_factory=ClientKeys)
    context: Optional[str] = None
    document_ids: List[str] = field(default_factory=list)
    chat_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return ""


class CompletionService:
    """Chat completions with optional retrieval context"""

    def __init__(
        self,
        router: CompletionRouter,
        retriever: Optional[Retriever] = None,
        message_store: Optional[SQLiteStore] = None,
        streaming: Optional[StreamingSettings] = None
    ):
        self.router = router
        self.retriever = retriever
        self.message_store = message_store
        self.streaming = streaming or StreamingSettings()

        logger.info(
            f"CompletionService initialized (retrieval={'enabled' if retriever else 'disabled'}, "
            f"history={'enabled' if message_store else 'disabled'})"
        )

    async def _context(self, request: CompletionRequest) -> str:
        if request.context:
            return request.context
        if not request.document_ids or self.retriever is None:
            return ""

        results = await self.retriever.retrieve(request.last_user_message, request.document_ids)
        if results:
            logger.info(f"Using {len(results)} passages from {len(request.document_ids)} documents")
        return self.retriever.format_context(results)

    async def prepare(self, request: CompletionRequest) -> Tuple[RoutedCompletion, List[AIMessage]]:
        """
        Validate, add context, pick provider and credential.

        Raises:
            ValidationError: malformed conversation
            EmbeddingError: document context requested but the query could not be embedded
        """
        validate_conversation(request.messages)
        messages = inject_context(request.messages, await self._context(request))
        routed = self.router.resolve(request.model, request.client_keys)
        return routed, messages

    async def _store_reply(self, request: CompletionRequest, model: str, text: str):
        if not (request.chat_id and request.user_id and self.message_store and text):
            return
        try:
            record = await self.message_store.save_message(
                chat_id=request.chat_id,
                user_id=request.user_id,
                role="assistant",
                content=text,
                model=model
            )
            logger.debug(f"Stored reply as message #{record.sequence_number} of chat {request.chat_id}")
        except Exception as e:
            logger.error(f"Failed to store reply for chat {request.chat_id}: {e}", exc_info=True)

    async def complete(self, request: CompletionRequest) -> Dict[str, Any]:
        """Non-streaming completion"""
        routed, messages = await self.prepare(request)

        text = await routed.complete(messages)

        await self._store_reply(request, routed.model, text)
        log_conversation(request.last_user_message, text, model=routed.model)

        return {
            "response": text,
            "model": routed.model,
            "provider": routed.family.value,
            "development_mode": routed.development_mode
        }

    async def stream(
        self,
        request: CompletionRequest,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None
    ) -> StreamRelay:
        """
        Streaming completion.

        Returns a primed relay: a provider failure before the first fragment
        has already been raised here.
        """
        routed, messages = await self.prepare(request)

        async def on_finish(session: StreamSession):
            await self._store_reply(request, routed.model, session.accumulated_text)
            if session.state == StreamState.COMPLETED:
                log_conversation(request.last_user_message, session.accumulated_text, model=routed.model)

        relay = StreamRelay(
            routed.stream(messages),
            is_disconnected=is_disconnected,
            on_finish=on_finish,
            settings=self.streaming
        )
        await relay.prime()

        logger.info(
            f"Streaming {routed.model} via {routed.family.value}"
            f"{' (development mode)' if routed.development_mode else ''}"
        )
        return relay
