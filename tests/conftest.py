"""Shared fixtures."""

from pathlib import Path

import pytest

from crypt_notes.crypto import KdfParams
from crypt_notes.storage import NoteFile


@pytest.fixture()
def fast_kdf() -> KdfParams:
    """Argon2id settings cheap enough for unit tests."""
    return KdfParams(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture()
def notes_path(tmp_path: Path) -> Path:
    return tmp_path / "notes.json"


@pytest.fixture()
def note_file(notes_path: Path) -> NoteFile:
    return NoteFile(notes_path)
