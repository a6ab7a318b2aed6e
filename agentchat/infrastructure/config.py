"""
Runtime settings, read from AGENTCHAT_* environment variables.
"""

from typing import Optional
from pydantic import BaseModel, Field
import os

from agentchat.domain.models.context_models import (
    WORKSPACE_CHUNK_MAX_SIZE, ADDITIONAL_CONTEXT_MAX_LENGTH, MAX_WORKSPACE_FOLDERS
)
from agentchat.domain.models.request_models import CredentialKind

ENV_PREFIX = "AGENTCHAT_"


class AgentChatSettings(BaseModel):
    """Settings shared by the context engine, request manager and server"""
    log_level: str = "INFO"
    log_format: str = Field("json", pattern="^(json|console)$")
    service_name: str = "agentchat"
    credential_kind: CredentialKind = CredentialKind.BEARER
    profile_id: Optional[str] = None
    origin: str = "IDE"
    default_model_id: Optional[str] = None
    max_chunk_size: int = Field(WORKSPACE_CHUNK_MAX_SIZE, gt=0)
    max_context_entries: int = Field(ADDITIONAL_CONTEXT_MAX_LENGTH, ge=0)
    max_workspace_folders: int = Field(MAX_WORKSPACE_FOLDERS, ge=0)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "AgentChatSettings":
        """Build settings from the environment; unset variables keep their defaults"""

        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)
