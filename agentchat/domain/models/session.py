from typing import List, Optional
from pydantic import BaseModel, Field
import sys

from .context_models import WorkspaceFolder, MAX_WORKSPACE_FOLDERS
from agentchat.domain.context.workspace import uri_to_fs_path


class RemoteWorkspaceState(BaseModel):
    """Remote workspace session, if one has been established"""
    workspace_id: Optional[str] = None
    connected: bool = False


class SessionContext(BaseModel):
    """Per-session state shared by the context engine and the request manager.

    Built once per session and passed to collaborators explicitly at
    construction time.
    """
    session_id: str = Field(description="Session identifier")
    workspace_folders: List[WorkspaceFolder] = Field(default_factory=list)
    remote_workspace: RemoteWorkspaceState = Field(default_factory=RemoteWorkspaceState)
    profile_id: Optional[str] = Field(None, description="Backend profile attached to every request")
    customization_id: Optional[str] = None
    platform: str = Field(default_factory=lambda: sys.platform)

    def workspace_folder_paths(self, limit: int = MAX_WORKSPACE_FOLDERS) -> List[str]:
        """Filesystem paths of the workspace roots, capped at `limit`"""
        return [uri_to_fs_path(folder.uri) for folder in self.workspace_folders][:limit]

    def remote_workspace_id(self) -> Optional[str]:
        """Workspace id of the remote session, only while it is connected"""
        if self.remote_workspace.connected and self.remote_workspace.workspace_id:
            return self.remote_workspace.workspace_id
        return None
