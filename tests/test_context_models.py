from __future__ import annotations

import pytest
from pydantic import ValidationError

from agentchat.domain.models.context_models import (
    ADDITIONAL_CONTEXT_MAX_LENGTH,
    WORKSPACE_CHUNK_MAX_SIZE,
    ContentType,
    ContextBundle,
    DocumentReference,
    normalize_path_key,
)


def doc(path: str, text: str = "", **kwargs) -> DocumentReference:
    return DocumentReference(path=path, relative_path=path.lstrip("/"), text=text or path, **kwargs)


def test_document_reference_defaults():
    reference = DocumentReference(path="/a.py")

    assert reference.start_line == -1
    assert reference.end_line == -1
    assert reference.source_type == ContentType.FILE
    assert reference.language is None


def test_document_reference_truncates_oversized_text():
    reference = DocumentReference(path="/big.txt", text="a" * (WORKSPACE_CHUNK_MAX_SIZE + 500))

    assert len(reference.text) == WORKSPACE_CHUNK_MAX_SIZE


def test_document_reference_is_immutable():
    reference = doc("/a.py")

    with pytest.raises(ValidationError):
        reference.text = "changed"


def test_merge_is_first_seen_union():
    a = ContextBundle(documents=[doc("/x"), doc("/y", text="from a")])
    b = ContextBundle(documents=[doc("/y", text="from b"), doc("/z")])

    merged = a.merge(b)

    assert [d.path for d in merged.documents] == ["/x", "/y", "/z"]
    assert merged.documents[1].text == "from a"
    # inputs are untouched
    assert len(a) == 2
    assert len(b) == 2


def test_add_does_not_overwrite_existing_entry():
    bundle = ContextBundle()

    assert bundle.add(doc("/x", text="first"))
    assert not bundle.add(doc("/x", text="second"))
    assert bundle.documents[0].text == "first"


def test_bundle_keeps_one_entry_per_path():
    bundle = ContextBundle(documents=[
        doc("/p/a.py", start_line=1, end_line=5),
        doc("/p/a.py", start_line=10, end_line=20),
    ])

    assert len(bundle) == 1
    assert bundle.documents[0].start_line == 1


def test_path_key_ignores_separator_and_drive_case():
    bundle = ContextBundle(documents=[
        DocumentReference(path="C:\\work\\a.py"),
        DocumentReference(path="c:/work/a.py"),
        DocumentReference(path="/c:/work/a.py"),
    ])

    assert len(bundle) == 1
    assert normalize_path_key("C:\\work\\a.py") == "/c:/work/a.py"
    assert normalize_path_key("/home/user/a.py") == "/home/user/a.py"


def test_bundle_is_capped():
    bundle = ContextBundle(documents=[doc(f"/file{i}") for i in range(ADDITIONAL_CONTEXT_MAX_LENGTH + 50)])

    assert len(bundle) == ADDITIONAL_CONTEXT_MAX_LENGTH
    assert bundle.documents[-1].path == f"/file{ADDITIONAL_CONTEXT_MAX_LENGTH - 1}"


def test_merge_respects_cap():
    a = ContextBundle(documents=[doc("/a"), doc("/b")], max_entries=3)
    b = ContextBundle(documents=[doc("/c"), doc("/d")])

    assert [d.path for d in a.merge(b).documents] == ["/a", "/b", "/c"]


def test_empty_bundle_is_falsy():
    assert not ContextBundle()
    assert ContextBundle(documents=[doc("/a")])
