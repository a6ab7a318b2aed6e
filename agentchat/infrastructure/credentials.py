"""
Credential sources consumed by the request manager.
"""

from typing import Dict, Any, Mapping, Optional
import os


class StaticCredentialSource:
    """Holds credentials pushed in by the host; update() rotates them in place"""

    def __init__(self, credentials: Optional[Dict[str, Mapping[str, Any]]] = None):
        self._credentials: Dict[str, Mapping[str, Any]] = dict(credentials or {})

    def update(self, kind: str, credentials: Mapping[str, Any]) -> None:
        self._credentials[kind] = dict(credentials)

    def clear(self, kind: str) -> None:
        self._credentials.pop(kind, None)

    def has_credentials(self, kind: str) -> bool:
        return kind in self._credentials

    def get_credentials(self, kind: str) -> Mapping[str, Any]:
        return self._credentials[kind]


class EnvironmentCredentialSource:
    """Reads credentials from the environment each time they are asked for"""

    BEARER_VARIABLES = {"token": "AGENTCHAT_BEARER_TOKEN", "expire_time": "AGENTCHAT_BEARER_EXPIRE_TIME"}
    IAM_VARIABLES = {
        "access_key_id": "AWS_ACCESS_KEY_ID",
        "secret_access_key": "AWS_SECRET_ACCESS_KEY",
        "session_token": "AWS_SESSION_TOKEN",
        "expire_time": "AWS_CREDENTIAL_EXPIRATION",
    }

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = environ if environ is not None else os.environ

    def _variables(self, kind: str) -> Dict[str, str]:
        if kind == "bearer":
            return self.BEARER_VARIABLES
        if kind == "iam":
            return self.IAM_VARIABLES
        return {}

    def has_credentials(self, kind: str) -> bool:
        if kind == "bearer":
            return bool(self.environ.get(self.BEARER_VARIABLES["token"]))
        if kind == "iam":
            return bool(
                self.environ.get(self.IAM_VARIABLES["access_key_id"])
                and self.environ.get(self.IAM_VARIABLES["secret_access_key"])
            )
        return False

    def get_credentials(self, kind: str) -> Mapping[str, Any]:
        return {
            key: self.environ.get(variable)
            for key, variable in self._variables(kind).items()
        }
