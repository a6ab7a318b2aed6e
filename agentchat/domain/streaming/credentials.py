from typing import Any, Callable, Mapping, Optional, Protocol
from datetime import datetime, timezone
import structlog

from agentchat.domain.errors import CredentialsUnavailableError
from agentchat.domain.models.request_models import CredentialKind, CredentialSnapshot

logger = structlog.get_logger(__name__)


class CredentialSource(Protocol):
    """Where credentials come from; acquiring them is not our concern"""

    def has_credentials(self, kind: str) -> bool:
        ...

    def get_credentials(self, kind: str) -> Mapping[str, Any]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_expiration(value: Any) -> Optional[datetime]:
    """Accept a datetime or an ISO-8601 string; naive values are taken as UTC"""

    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise TypeError(f"Unsupported expiration value: {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class CredentialProvider:
    """Derives a fresh credential snapshot from the source on every call.

    Nothing is cached. When the source reports no expiration the snapshot
    expires "now", so whoever holds it must derive again before reusing it.
    """

    def __init__(
        self,
        source: CredentialSource,
        kind: CredentialKind = CredentialKind.BEARER,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.source = source
        self.kind = kind
        self.clock = clock

    def derive(self) -> CredentialSnapshot:
        kind = self.kind.value
        if not self.source.has_credentials(kind):
            raise CredentialsUnavailableError(kind)

        raw = self.source.get_credentials(kind)
        expiration = parse_expiration(raw.get("expire_time") or raw.get("expiration"))
        if expiration is None:
            expiration = self.clock()

        return CredentialSnapshot(kind=self.kind, secret=self._secret(raw), expiration=expiration)

    def _secret(self, raw: Mapping[str, Any]) -> Any:
        if self.kind == CredentialKind.BEARER:
            return raw.get("token")
        return {
            "access_key_id": raw.get("access_key_id"),
            "secret_access_key": raw.get("secret_access_key"),
            "session_token": raw.get("session_token"),
        }
