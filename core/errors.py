"""
Error Taxonomy

Every failure the chat backend reports to a client is one of these.
Each error carries the HTTP status it maps to and a short, provider-agnostic
message that is safe to show to the user. The technical detail (upstream
status, SDK message) stays in the exception text and in the logs.
"""

from typing import Optional


class AssistantError(Exception):
    """Base class for all errors surfaced to clients"""

    status_code: int = 500
    public_message: str = "an internal error occurred"

    def __init__(self, detail: Optional[str] = None, public_message: Optional[str] = None):
        super().__init__(detail or public_message or self.public_message)
        if public_message:
            self.public_message = public_message


class ValidationError(AssistantError):
    """Malformed input (empty conversation, wrong roles, bad parameters)"""

    status_code = 400
    public_message = "invalid request"

    def __init__(self, detail: str):
        # Validation messages describe the caller's own input, so they are public
        super().__init__(detail, public_message=detail)


class CredentialError(AssistantError):
    """Missing or rejected API key"""

    status_code = 401
    public_message = "invalid API key"


class RateLimitError(AssistantError):
    """Provider throttling"""

    status_code = 429
    public_message = "rate limit reached, try again later"


class ProviderError(AssistantError):
    """Any other upstream model-provider failure"""

    status_code = 500
    public_message = "the model provider failed to respond"


class EmbeddingError(AssistantError):
    """Embedding service failure"""

    status_code = 500
    public_message = "failed to embed text"


class RetrievalError(AssistantError):
    """Similarity-search backend failure"""

    status_code = 500
    public_message = "document search is unavailable"


class DocumentNotFoundError(AssistantError):
    """Referenced document does not exist"""

    status_code = 404
    public_message = "document not found"
