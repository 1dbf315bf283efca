"""
AI Provider Abstraction - Base Interface

One adapter per provider family. Every adapter turns the unified message
list into its provider's wire format and exposes the reply as an async
iterator of text fragments, whatever the provider's transport looks like.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, AsyncIterator, Tuple
from enum import Enum

from core.errors import ValidationError

ROLES = ("system", "user", "assistant")


class ProviderFamily(Enum):
    """Provider families with distinct wire conventions"""
    OPENAI = "openai"          # Family A: flat list, inline system message
    ANTHROPIC = "anthropic"    # Family B: top-level system field, content blocks
    GOOGLE = "google"          # Family C: no system role, coalesced turns

    @property
    def display_name(self) -> str:
        return {
            ProviderFamily.OPENAI: "OpenAI",
            ProviderFamily.ANTHROPIC: "Anthropic",
            ProviderFamily.GOOGLE: "Google",
        }[self]


# Model id prefix -> family. Checked in order, first match wins.
MODEL_PREFIXES: Tuple[Tuple[str, ProviderFamily], ...] = (
    ("gpt-", ProviderFamily.OPENAI),
    ("chatgpt-", ProviderFamily.OPENAI),
    ("o1", ProviderFamily.OPENAI),
    ("o3", ProviderFamily.OPENAI),
    ("o4", ProviderFamily.OPENAI),
    ("claude-", ProviderFamily.ANTHROPIC),
    ("gemini-", ProviderFamily.GOOGLE),
)


def family_for_model(model: str) -> Optional[ProviderFamily]:
    """Family owning a model id, or None when no prefix matches"""
    for prefix, family in MODEL_PREFIXES:
        if model.startswith(prefix):
            return family
    return None


@dataclass
class AIMessage:
    """Single message in conversation"""
    role: str  # "system", "user", "assistant"
    content: str
    model: Optional[str] = None


@dataclass
class AIProviderConfig:
    """Generation settings shared by every request to one family"""
    family: ProviderFamily
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: float = 60.0
    base_url: Optional[str] = None
    extra_params: Dict[str, Any] = field(default_factory=dict)


def validate_conversation(messages: List[AIMessage]) -> None:
    """
    Check the shape every adapter relies on.

    Raises:
        ValidationError: empty conversation, unknown role, misplaced or
            repeated system message, or last message not from the user
    """
    if not messages:
        raise ValidationError("Conversation history not provided")

    for index, message in enumerate(messages):
        if message.role not in ROLES:
            raise ValidationError(f"Unknown message role: {message.role}")
        if message.role == "system" and index != 0:
            raise ValidationError("System message must be the first message")

    if messages[-1].role != "user":
        raise ValidationError("Last message must be from the user")


def inject_context(messages: List[AIMessage], context: str) -> List[AIMessage]:
    """
    Put a retrieved context block in front of the conversation.

    Appends to the existing system message, or adds a new leading one.
    The input list is not modified.
    """
    if not context:
        return list(messages)

    if messages and messages[0].role == "system":
        system = messages[0]
        merged = AIMessage(
            role="system",
            content=f"{system.content}\n\n{context}" if system.content else context,
            model=system.model
        )
        return [merged] + list(messages[1:])

    return [AIMessage(role="system", content=context)] + list(messages)


def split_system(messages: List[AIMessage]) -> Tuple[Optional[str], List[AIMessage]]:
    """Separate the (single, leading) system message from the turns"""
    if messages and messages[0].role == "system":
        return messages[0].content, list(messages[1:])
    return None, list(messages)


class ProviderAdapter(ABC):
    """Abstract interface for one provider family"""

    family: ProviderFamily

    def __init__(self, config: AIProviderConfig):
        self.config = config

    @abstractmethod
    def translate(self, messages: List[AIMessage]) -> Dict[str, Any]:
        """Unified messages -> provider request fields (pure, no I/O)"""
        pass

    @abstractmethod
    def stream(
        self,
        messages: List[AIMessage],
        model: str,
        api_key: str
    ) -> AsyncIterator[str]:
        """
        Stream the reply as text fragments, in provider order.

        Raises:
            CredentialError, RateLimitError, ProviderError
        """
        pass

    async def complete(self, messages: List[AIMessage], model: str, api_key: str) -> str:
        """Non-streaming completion: the joined stream"""
        fragments = []
        async for fragment in self.stream(messages, model, api_key):
            fragments.append(fragment)
        return "".join(fragments)
