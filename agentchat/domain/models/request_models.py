from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime, timezone
from enum import Enum

from .chat_command import CommandKind


class RequestState(str, Enum):
    """Lifecycle of one outgoing backend call"""
    CREATED = "created"
    REGISTERED = "registered"
    SETTLED_OK = "settled_ok"
    SETTLED_ERROR = "settled_error"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({
    RequestState.SETTLED_OK,
    RequestState.SETTLED_ERROR,
    RequestState.CANCELLED,
})


class CredentialKind(str, Enum):
    """Flavour of credential consumed by the transport"""
    BEARER = "bearer"
    IAM = "iam"


class CredentialSnapshot(BaseModel):
    """Short-lived secret material, derived again for every call"""
    model_config = ConfigDict(frozen=True)

    kind: CredentialKind
    secret: Any = Field(repr=False, description="Token or key material")
    expiration: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(self.expiration.tzinfo)
        return now >= self.expiration


class InflightRequest(BaseModel):
    """Live-set entry for a request that has not settled yet"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    correlation_key: str
    kind: CommandKind
    cancellation: Any = Field(repr=False, description="CancellationToken owned by the manager")
    state: RequestState = RequestState.CREATED
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def cancel(self) -> None:
        self.cancellation.cancel()

    def transition(self, state: RequestState) -> None:
        """Move to a new state; terminal states are final"""
        if self.state in TERMINAL_STATES:
            return
        self.state = state
