"""
Error taxonomy.

Upstream data failures never leave the fetchers (they turn into mock data);
everything deriving from ChatError is meant for the caller and carries a
machine-readable ``kind`` plus the HTTP status the REST layer should use.
"""


class UpstreamDataUnavailable(Exception):
    """A market/weather/schemes provider failed, timed out or returned nothing."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class ChatError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class QuotaExceededError(ChatError):
    kind = "quota_exceeded"
    status_code = 429

    def __init__(self, message: str = "API quota exceeded. Please try again in a few minutes."):
        super().__init__(message)


class ProviderError(ChatError):
    kind = "provider_error"
    status_code = 502


class InvalidInputError(ChatError):
    kind = "invalid_input"
    status_code = 400


class ConversationNotFoundError(ChatError):
    kind = "not_found"
    status_code = 404

    def __init__(self, message: str = "Conversation not found"):
        super().__init__(message)


class ConversationEndedError(ChatError):
    kind = "conversation_ended"
    status_code = 400

    def __init__(self, message: str = "Conversation has ended"):
        super().__init__(message)


class AuthenticationError(ChatError):
    kind = "unauthorized"
    status_code = 401
