"""In-memory ordered note collection."""

import json
import logging
from uuid import uuid4

from pydantic import ValidationError

from .errors import FormatError, NotFound
from .models import FORMAT_VERSION, PLAINTEXT_FORMAT, Note, NotesDocument, utc_now

logger = logging.getLogger(__name__)


class NoteRepository:
    """Owns the notes of one session.

    Notes are kept newest-created first. Callers only ever get copies, so
    every change goes through create/update/delete/toggle_pin.
    """

    def __init__(self, notes=()) -> None:
        self._notes: list[Note] = []
        self._by_id: dict[str, Note] = {}
        self._retired: set[str] = set()
        for note in notes:
            if note.id in self._by_id:
                raise FormatError(f"duplicate note id {note.id!r}")
            note = note.model_copy()
            self._notes.append(note)
            self._by_id[note.id] = note

    def __len__(self) -> int:
        return len(self._notes)

    def __contains__(self, note_id) -> bool:
        return note_id in self._by_id

    def _new_id(self) -> str:
        while True:
            note_id = str(uuid4())
            if note_id not in self._by_id and note_id not in self._retired:
                return note_id

    def _get(self, note_id: str) -> Note:
        try:
            return self._by_id[note_id]
        except KeyError:
            raise NotFound(note_id) from None

    def create(self, title: str, content: str) -> str:
        """Insert a new note at the head and return its id."""
        now = utc_now()
        note = Note(id=self._new_id(), title=title, content=content, created_at=now, updated_at=now)
        self._notes.insert(0, note)
        self._by_id[note.id] = note
        logger.debug("Created note %s", note.id)
        return note.id

    def read(self, note_id: str) -> Note:
        return self._get(note_id).model_copy()

    def update(self, note_id: str, title: str | None = None, content: str | None = None) -> Note:
        """Change the given fields and bump updated_at."""
        note = self._get(note_id)
        if title is not None:
            note.title = title
        if content is not None:
            note.content = content
        note.updated_at = max(utc_now(), note.updated_at)
        return note.model_copy()

    def toggle_pin(self, note_id: str) -> Note:
        note = self._get(note_id)
        note.pinned = not note.pinned
        note.updated_at = max(utc_now(), note.updated_at)
        return note.model_copy()

    def delete(self, note_id: str) -> None:
        note = self._get(note_id)
        self._notes.remove(note)
        del self._by_id[note_id]
        self._retired.add(note_id)
        logger.debug("Deleted note %s", note_id)

    def list(self) -> tuple[Note, ...]:
        """Notes in display order: pinned first, otherwise stored order."""
        ordered = sorted(self._notes, key=lambda n: not n.pinned)
        return tuple(n.model_copy() for n in ordered)

    def list_stored(self) -> tuple[Note, ...]:
        return tuple(n.model_copy() for n in self._notes)

    # --- Serialization ---

    def serialize(self) -> bytes:
        document = NotesDocument(notes=self._notes)
        return document.model_dump_json(indent=2).encode("utf-8")

    @classmethod
    def deserialize(cls, raw: bytes) -> "NoteRepository":
        """Parse a plaintext document (or a bare JSON array of notes)."""
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError("notes data is not valid UTF-8") from exc
        if not text.strip():
            return cls()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FormatError(f"notes data is not valid JSON: {exc}") from exc
        except RecursionError as exc:
            raise FormatError("notes data is nested too deeply") from exc

        if isinstance(data, list):
            data = {"notes": data}
        elif isinstance(data, dict):
            if data.get("format", PLAINTEXT_FORMAT) != PLAINTEXT_FORMAT:
                raise FormatError(f"unknown notes format {data.get('format')!r}")
            if data.get("version", FORMAT_VERSION) != FORMAT_VERSION:
                raise FormatError(f"unsupported notes format version {data.get('version')!r}")
        else:
            raise FormatError("notes data must be a JSON object or array")

        try:
            document = NotesDocument.model_validate(data)
        except ValidationError as exc:
            raise FormatError(f"failed to parse notes data: {exc.error_count()} invalid field(s)") from exc
        return cls(document.notes)
