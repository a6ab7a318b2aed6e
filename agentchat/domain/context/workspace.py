from typing import List, Optional
from urllib.parse import quote, unquote, urlparse
import posixpath
import re

from agentchat.domain.models.context_models import WorkspaceFolder

_DRIVE_PATH = re.compile(r"^/[A-Za-z]:")
WINDOWS_PLATFORMS = ("win32", "cygwin")


def is_windows(platform: str) -> bool:
    return platform in WINDOWS_PLATFORMS


def path_to_file_uri(path: str, platform: str = "linux") -> str:
    """Build the canonical file URI for a filesystem path.

    Drive letters are lower-cased and their colon percent-encoded, so
    ``C:\\Foo\\bar.txt`` becomes ``file:///c%3A/Foo/bar.txt``.
    """
    authority = ""
    if is_windows(platform):
        path = path.replace("\\", "/")

    # UNC share: //server/share/...
    if path.startswith("//"):
        authority, _, rest = path[2:].partition("/")
        path = "/" + rest

    if not path.startswith("/"):
        path = "/" + path

    if _DRIVE_PATH.match(path):
        path = "/" + path[1].lower() + path[2:]

    return "file://" + authority + quote(path, safe="/")


def uri_to_path(value: str) -> str:
    """Return the decoded, slash-separated path of a file URI or plain path.

    Drive letters come back lower-cased so ``file:///C:/x`` and ``C:\\x``
    compare equal.
    """
    if value.startswith("file://"):
        parsed = urlparse(value)
        path = unquote(parsed.path)
        if parsed.netloc:
            return "//" + parsed.netloc + path
    else:
        path = value.replace("\\", "/")
        if re.match(r"^[A-Za-z]:", path):
            path = "/" + path

    if _DRIVE_PATH.match(path):
        path = "/" + path[1].lower() + path[2:]
    return path


def uri_to_fs_path(value: str) -> str:
    """Filesystem form of a file URI (drive paths lose their leading slash)"""
    path = uri_to_path(value)
    if _DRIVE_PATH.match(path):
        return path[1:]
    return path


def find_workspace_root_folder(
    file_uri: str,
    workspace_folders: List[WorkspaceFolder]
) -> Optional[WorkspaceFolder]:
    """Return the most specific workspace folder that contains the file"""

    file_path = uri_to_path(file_uri)

    # Longest path first so nested roots win over their parents
    ordered = sorted(
        workspace_folders,
        key=lambda folder: len(uri_to_path(folder.uri)),
        reverse=True
    )

    for folder in ordered:
        folder_path = uri_to_path(folder.uri)
        if not folder_path.endswith("/"):
            folder_path += "/"
        if file_path.startswith(folder_path):
            return folder

    return None


def folder_name(workspace_folder: WorkspaceFolder) -> str:
    """Display name of a workspace folder, falling back to its basename"""
    if workspace_folder.name:
        return workspace_folder.name
    return posixpath.basename(uri_to_path(workspace_folder.uri).rstrip("/"))


def get_relative_path(workspace_folder: WorkspaceFolder, file_path: str) -> str:
    """Path of the file relative to the workspace folder"""
    return posixpath.relpath(uri_to_path(file_path), uri_to_path(workspace_folder.uri))


def get_relative_path_with_workspace_folder(workspace_folder: WorkspaceFolder, file_path: str) -> str:
    """Relative path prefixed with the folder name to disambiguate multi-root workspaces"""
    return posixpath.join(folder_name(workspace_folder), get_relative_path(workspace_folder, file_path))
