"""
Lookup keys for documents held by an editor's document store.

Editors disagree on how a Windows path is written as a URI. Parsing
``C:\\Foo\\bar.txt`` gives ``file:///c%3A/Foo/bar.txt``, while some editors
index the same file as ``file:///C:/Foo/bar.txt`` or ``file:///c:/Foo/bar.txt``.
``possible_path_uris`` returns every spelling worth trying.
"""

from typing import Optional, Set
import sys

from .workspace import path_to_file_uri, is_windows

_FILE_SCHEME_PREFIX = "file:///"
_ENCODED_COLON = "%3a"


def possible_path_uris(path: str, platform: Optional[str] = None) -> Set[str]:
    """Return the set of URI strings that may identify `path` in a document store"""

    platform = platform or sys.platform
    uris = set()

    uri = path_to_file_uri(path, platform)
    uris.add(uri)

    if (
        is_windows(platform)
        and uri.startswith(_FILE_SCHEME_PREFIX)
        and uri[9:12].lower() == _ENCODED_COLON
    ):
        drive_lower = uri[8].lower()
        drive_upper = uri[8].upper()
        leading = uri[:8]
        encoded_trailing = uri[9:]
        colon_trailing = ":" + uri[12:]

        # percent-encoded colon, e.g. file:///c%3A/Foo/bar.txt
        uris.add(leading + drive_lower + encoded_trailing)
        uris.add(leading + drive_upper + encoded_trailing)

        # literal colon, e.g. file:///C:/Foo/bar.txt
        uris.add(leading + drive_lower + colon_trailing)
        uris.add(leading + drive_upper + colon_trailing)

    return uris
