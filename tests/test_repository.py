"""Tests for the in-memory note repository and its plaintext format."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from crypt_notes.errors import FormatError, NotFound
from crypt_notes.models import Note
from crypt_notes.repository import NoteRepository


@pytest.fixture()
def repo() -> NoteRepository:
    return NoteRepository()


class TestCrud:
    def test_create_sets_equal_timestamps(self, repo: NoteRepository) -> None:
        note = repo.read(repo.create("Title", "Body"))
        assert note.title == "Title"
        assert note.content == "Body"
        assert note.created_at == note.updated_at
        assert not note.pinned

    def test_create_inserts_at_head(self, repo: NoteRepository) -> None:
        first = repo.create("first", "")
        second = repo.create("second", "")
        assert [n.id for n in repo.list()] == [second, first]

    def test_ids_are_unique(self, repo: NoteRepository) -> None:
        ids = {repo.create(str(i), "") for i in range(50)}
        assert len(ids) == 50

    def test_update_keeps_unspecified_fields(self, repo: NoteRepository) -> None:
        note_id = repo.create("Title", "Body")
        before = repo.read(note_id)
        after = repo.update(note_id, content="New body")
        assert after.title == "Title"
        assert after.content == "New body"
        assert after.created_at == before.created_at
        assert after.updated_at >= before.updated_at

    def test_update_never_moves_backwards(self) -> None:
        future = datetime.now(timezone.utc) + timedelta(days=1)
        repo = NoteRepository([Note(id="a", created_at=future, updated_at=future)])
        assert repo.update("a", title="x").updated_at == future

    def test_read_returns_copy(self, repo: NoteRepository) -> None:
        note_id = repo.create("Title", "Body")
        copy = repo.read(note_id)
        copy.title = "changed"
        assert repo.read(note_id).title == "Title"

    def test_deleted_id_is_gone(self, repo: NoteRepository) -> None:
        note_id = repo.create("Title", "Body")
        repo.delete(note_id)
        assert note_id not in repo
        with pytest.raises(NotFound):
            repo.read(note_id)
        with pytest.raises(NotFound):
            repo.update(note_id, title="x")
        with pytest.raises(NotFound):
            repo.delete(note_id)

    def test_not_found_carries_id(self, repo: NoteRepository) -> None:
        with pytest.raises(NotFound) as excinfo:
            repo.read("missing")
        assert excinfo.value.note_id == "missing"

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(FormatError):
            NoteRepository([Note(id="a"), Note(id="a")])


class TestPinning:
    def test_pinned_first_then_stored_order(self, repo: NoteRepository) -> None:
        a = repo.create("a", "")
        b = repo.create("b", "")
        c = repo.create("c", "")
        repo.toggle_pin(a)
        assert [n.id for n in repo.list()] == [a, c, b]
        assert [n.id for n in repo.list_stored()] == [c, b, a]

    def test_toggle_twice(self, repo: NoteRepository) -> None:
        note_id = repo.create("a", "")
        assert repo.toggle_pin(note_id).pinned
        assert not repo.toggle_pin(note_id).pinned


class TestSerialization:
    def test_round_trip(self, repo: NoteRepository) -> None:
        repo.create("One", "first\nline")
        pinned = repo.create("Two", "ünïcödé")
        repo.toggle_pin(pinned)
        restored = NoteRepository.deserialize(repo.serialize())
        assert [n.model_dump() for n in restored.list_stored()] == [n.model_dump() for n in repo.list_stored()]

    def test_document_framing(self, repo: NoteRepository) -> None:
        repo.create("One", "")
        data = json.loads(repo.serialize())
        assert data["format"] == "crypt-notes"
        assert data["version"] == 1
        assert data["notes"][0]["title"] == "One"

    def test_empty_input_is_empty_repository(self) -> None:
        assert len(NoteRepository.deserialize(b"")) == 0
        assert len(NoteRepository.deserialize(b"  \n")) == 0

    def test_bare_array_accepted(self) -> None:
        raw = json.dumps([{"id": "x", "title": "t", "content": "c",
                           "created_at": "2024-01-01T00:00:00Z", "updated_at": "2024-01-02T00:00:00Z"}])
        repo = NoteRepository.deserialize(raw.encode())
        assert repo.read("x").title == "t"

    def test_naive_timestamps_are_utc(self) -> None:
        raw = json.dumps({"notes": [{"id": "x", "created_at": "2024-01-01T00:00:00",
                                     "updated_at": "2024-01-01T00:00:00"}]})
        note = NoteRepository.deserialize(raw.encode()).read("x")
        assert note.created_at.tzinfo is not None

    @pytest.mark.parametrize(
        "raw",
        [
            b"\xff\xfe",
            b"{not json",
            b"42",
            b'{"format": "something-else", "notes": []}',
            b'{"version": 99, "notes": []}',
            b'{"notes": [{"id": ""}]}',
            b"[" * 100000 + b"]" * 100000,
            b'{"notes": [{"id": "x", "created_at": "2024-01-02T00:00:00Z", "updated_at": "2024-01-01T00:00:00Z"}]}',
        ],
    )
    def test_malformed_input(self, raw: bytes) -> None:
        with pytest.raises(FormatError):
            NoteRepository.deserialize(raw)
