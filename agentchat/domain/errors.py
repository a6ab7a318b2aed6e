from typing import Optional


class AgentChatError(Exception):
    """Base class for errors raised by agentchat"""


class CredentialsUnavailableError(AgentChatError):
    """The credential source has nothing for the requested kind"""

    def __init__(self, kind: str):
        super().__init__(f"No {kind} credentials available")
        self.kind = kind


class RequestCancelledError(AgentChatError):
    """A request was cancelled before the transport settled it"""

    def __init__(self, correlation_key: str, reason: Optional[str] = None):
        message = f"Request {correlation_key} was cancelled"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.correlation_key = correlation_key
        self.reason = reason
