"""Application state machine.

Each UI mode is its own frozen dataclass, so a mode can only carry the data
that makes sense for it. The renderer feeds logical actions to
App.dispatch() and draws App.snapshot(); it never touches notes directly.
Every transition that changes a note saves the file before returning.
"""

import enum
import logging
import textwrap
from dataclasses import dataclass, field, replace
from typing import ClassVar

from .crypto import validate_new_password
from .errors import AuthenticationError, FormatError, NotFound, PasswordPolicyError, StorageIOError
from .models import Note
from .repository import NoteRepository
from .search import search
from .storage import export_plaintext

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
DEFAULT_WRAP_WIDTH = 76
UNLOCK_FAILED = "Unable to unlock: wrong password or damaged file."


class Action(enum.Enum):
    UP = "up"
    DOWN = "down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    SELECT = "select"
    NEW = "new"
    EDIT = "edit"
    DELETE = "delete"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    SEARCH = "search"
    SUBMIT = "submit"
    SAVE = "save"
    BACKSPACE = "backspace"
    SWITCH_FIELD = "switch_field"
    TOGGLE_PIN = "toggle_pin"
    TOGGLE_ENCRYPTION = "toggle_encryption"
    EXPORT = "export"
    QUIT = "quit"


def wrap_text(text, width):
    """Split text into display rows of at most width characters."""
    width = max(width, 1)
    rows = []
    for line in text.splitlines() or [""]:
        rows.extend(textwrap.wrap(line, width=width, replace_whitespace=False, drop_whitespace=False) or [""])
    return rows


@dataclass(frozen=True)
class TypeChar:
    char: str


# --- Modes ---

@dataclass(frozen=True)
class Locked:
    mode: ClassVar[str] = "locked"
    password: str = field(default="", repr=False)
    attempts: int = 0


@dataclass(frozen=True)
class SetPassword:
    mode: ClassVar[str] = "set_password"
    password: str = field(default="", repr=False)
    confirm: str = field(default="", repr=False)
    confirming: bool = False
    required: bool = False  # set at start-up: cancelling exits


@dataclass(frozen=True)
class NoteList:
    mode: ClassVar[str] = "list"
    selected: int = 0


@dataclass(frozen=True)
class View:
    mode: ClassVar[str] = "view"
    note_id: str
    scroll: int = 0
    origin: object = None


@dataclass(frozen=True)
class Edit:
    mode: ClassVar[str] = "edit"
    note_id: str | None = None  # None while creating
    title: str = ""
    content: str = ""
    focus: str = "title"
    original: tuple = ("", "")


@dataclass(frozen=True)
class Search:
    mode: ClassVar[str] = "search"
    query: str = ""
    results: tuple = ()
    selected: int = 0


@dataclass(frozen=True)
class ConfirmDelete:
    mode: ClassVar[str] = "confirm_delete"
    note_id: str
    selected: int = 0


@dataclass(frozen=True)
class ConfirmDiscard:
    """Leaving the editor with unsaved changes: save, discard or keep editing."""

    mode: ClassVar[str] = "confirm_discard"
    edit: Edit


@dataclass(frozen=True)
class ConfirmPlaintext:
    """Confirmation before notes of an encrypted file are written in the clear."""

    mode: ClassVar[str] = "confirm_plaintext"
    purpose: str  # "export" or "decrypt"
    selected: int = 0


@dataclass(frozen=True)
class Exit:
    mode: ClassVar[str] = "exit"
    code: int = 0


@dataclass(frozen=True)
class Snapshot:
    """Everything the renderer needs to draw one frame."""

    mode: str
    state: object
    notes: tuple
    note: Note | None
    results: tuple
    status: str | None
    is_error: bool
    encrypted: bool
    path: str


class App:
    def __init__(self, note_file, repository=None, state=None, *, confirm_delete=True,
                 max_unlock_attempts=3, export_path="crypt-notes-export.json", kdf_params=None):
        self.note_file = note_file
        self.repository = repository if repository is not None else NoteRepository()
        self.state = state or NoteList()
        self.confirm_delete = confirm_delete
        self.max_unlock_attempts = max_unlock_attempts
        self.export_path = export_path
        self.kdf_params = kdf_params
        self.wrap_width = DEFAULT_WRAP_WIDTH  # updated by the renderer
        self.status = None
        self.status_is_error = False
        self._quit_failed = False
        self._handlers = {
            Locked: self._on_locked,
            SetPassword: self._on_set_password,
            NoteList: self._on_list,
            View: self._on_view,
            Edit: self._on_edit,
            Search: self._on_search,
            ConfirmDelete: self._on_confirm_delete,
            ConfirmDiscard: self._on_confirm_discard,
            ConfirmPlaintext: self._on_confirm_plaintext,
        }

    @classmethod
    def open(cls, note_file, encryption_requested=False, **options):
        """Pick the initial mode from what is on disk.

        Plaintext load failures propagate: the caller decides how to report
        a file that cannot be used.
        """
        if note_file.is_encrypted_on_disk():
            return cls(note_file, None, Locked(), **options)
        repository = note_file.load()
        if encryption_requested:
            return cls(note_file, repository, SetPassword(required=True), **options)
        if not note_file.exists():
            # First run starts with an empty plaintext file
            note_file.save(repository)
        return cls(note_file, repository, NoteList(), **options)

    @property
    def finished(self):
        return isinstance(self.state, Exit)

    def close(self):
        self.note_file.lock()

    def dispatch(self, action):
        """Apply one logical action and return the new state."""
        if self.finished:
            return self.state
        if action is not Action.QUIT:
            self._quit_failed = False
        self.status = None
        self.status_is_error = False
        handler = self._handlers[type(self.state)]
        try:
            self.state = handler(self.state, action)
        except NotFound as exc:
            logger.error("Internal error in %s: %s", self.state.mode, exc)
            self._error(f"Internal error: {exc}")
            self.state = NoteList()
        if self.finished:
            self.close()
        return self.state

    def snapshot(self):
        state = self.state
        notes = () if isinstance(state, Locked) else self.repository.list()
        note = None
        note_id = getattr(state, "note_id", None)
        if note_id is not None and note_id in self.repository:
            note = self.repository.read(note_id)
        results = ()
        if isinstance(state, Search):
            results = tuple(self.repository.read(i) for i in state.results if i in self.repository)
        return Snapshot(
            mode=state.mode,
            state=state,
            notes=notes,
            note=note,
            results=results,
            status=self.status,
            is_error=self.status_is_error,
            encrypted=self.note_file.encrypted,
            path=str(self.note_file.path),
        )

    # --- Helpers ---

    def _info(self, message):
        self.status = message
        self.status_is_error = False

    def _error(self, message):
        self.status = message
        self.status_is_error = True

    def _persist(self, message):
        """Save the file. On failure the in-memory notes are kept and the error shown."""
        try:
            self.note_file.save(self.repository)
        except StorageIOError as exc:
            logger.error("Save failed: %s", exc)
            self._error(f"Save failed: {exc}. Changes are kept in memory, save again to retry.")
            return False
        self._info(message)
        return True

    def _index_of(self, note_id):
        for i, note in enumerate(self.repository.list()):
            if note.id == note_id:
                return i
        return 0

    @staticmethod
    def _move(selected, action, count):
        if count == 0:
            return 0
        step = {Action.UP: -1, Action.DOWN: 1, Action.PAGE_UP: -PAGE_SIZE, Action.PAGE_DOWN: PAGE_SIZE}[action]
        return max(0, min(count - 1, selected + step))

    @staticmethod
    def _edit_text(text, action):
        if isinstance(action, TypeChar):
            return text + action.char
        return text[:-1]

    # --- Locked ---

    def _on_locked(self, state, action):
        if isinstance(action, TypeChar) or action is Action.BACKSPACE:
            return replace(state, password=self._edit_text(state.password, action))
        if action in (Action.CANCEL, Action.QUIT):
            return Exit(0)
        if action is not Action.SUBMIT:
            return state
        if not state.password:
            self._error("Enter your password.")
            return state
        try:
            self.repository = self.note_file.unlock(state.password)
        except (AuthenticationError, FormatError):
            attempts = state.attempts + 1
            if self.max_unlock_attempts and attempts >= self.max_unlock_attempts:
                logger.warning("Giving up after %d failed unlock attempts", attempts)
                self._error("Too many failed attempts.")
                return Exit(1)
            self._error(UNLOCK_FAILED)
            return Locked(attempts=attempts)
        except StorageIOError as exc:
            self._error(str(exc))
            return Locked(attempts=state.attempts)
        self._info(f"Unlocked {len(self.repository)} notes.")
        return NoteList()

    # --- SetPassword ---

    def _on_set_password(self, state, action):
        if isinstance(action, TypeChar) or action is Action.BACKSPACE:
            if state.confirming:
                return replace(state, confirm=self._edit_text(state.confirm, action))
            return replace(state, password=self._edit_text(state.password, action))
        if action in (Action.CANCEL, Action.QUIT):
            if state.required:
                return Exit(0)
            self._info("Encryption unchanged.")
            return NoteList()
        if action is not Action.SUBMIT:
            return state
        if not state.confirming:
            try:
                validate_new_password(state.password)
            except PasswordPolicyError as exc:
                self._error(str(exc))
                return SetPassword(required=state.required)
            return replace(state, confirming=True)
        if state.confirm != state.password:
            self._error("Passwords do not match. Try again.")
            return SetPassword(required=state.required)
        try:
            self.note_file.enable_encryption(self.repository, state.password, self.kdf_params)
        except StorageIOError as exc:
            self._error(f"Could not encrypt notes file: {exc}")
            return SetPassword(required=state.required)
        self._info("Encryption enabled.")
        return NoteList()

    # --- List ---

    def _on_list(self, state, action):
        notes = self.repository.list()
        selected = min(state.selected, max(len(notes) - 1, 0))
        current = notes[selected] if notes else None

        if action in (Action.UP, Action.DOWN, Action.PAGE_UP, Action.PAGE_DOWN):
            return NoteList(self._move(selected, action, len(notes)))
        if action is Action.NEW:
            return Edit()
        if action is Action.SEARCH:
            return Search()
        if action is Action.SAVE:
            self._persist("Saved.")
            return NoteList(selected)
        if action is Action.EXPORT:
            if self.note_file.encrypted:
                return ConfirmPlaintext("export", selected)
            self._export()
            return NoteList(selected)
        if action is Action.TOGGLE_ENCRYPTION:
            if self.note_file.encrypted:
                return ConfirmPlaintext("decrypt", selected)
            return SetPassword()
        if action is Action.QUIT:
            return self._quit(state)
        if current is None:
            return NoteList(0)

        if action is Action.SELECT:
            return View(current.id, origin=NoteList(selected))
        if action is Action.EDIT:
            return Edit(current.id, current.title, current.content, original=(current.title, current.content))
        if action is Action.DELETE:
            if self.confirm_delete:
                return ConfirmDelete(current.id, selected)
            self._delete(current.id)
            return NoteList(selected)
        if action is Action.TOGGLE_PIN:
            note = self.repository.toggle_pin(current.id)
            self._persist("Pinned." if note.pinned else "Unpinned.")
            return NoteList(self._index_of(current.id))
        return NoteList(selected)

    def _quit(self, state):
        try:
            self.note_file.save(self.repository)
        except StorageIOError as exc:
            if self._quit_failed:
                logger.error("Exiting without saving: %s", exc)
                return Exit(1)
            self._quit_failed = True
            logger.error("Final save failed: %s", exc)
            self._error(f"Save failed: {exc}. Quit again to exit without saving.")
            return state
        return Exit(0)

    def _delete(self, note_id):
        self.repository.delete(note_id)
        self._persist("Note deleted.")

    def _export(self):
        try:
            path = export_plaintext(self.export_path, self.repository)
        except StorageIOError as exc:
            self._error(f"Export failed: {exc}")
            return
        self._info(f"Exported {len(self.repository)} notes to {path}.")

    # --- View ---

    def _on_view(self, state, action):
        note = self.repository.read(state.note_id)
        if action in (Action.UP, Action.DOWN, Action.PAGE_UP, Action.PAGE_DOWN):
            lines = len(wrap_text(note.content, self.wrap_width))
            return replace(state, scroll=self._move(state.scroll, action, lines))
        if action is Action.EDIT:
            return Edit(note.id, note.title, note.content, original=(note.title, note.content))
        if action is Action.TOGGLE_PIN:
            note = self.repository.toggle_pin(note.id)
            if not self._persist("Pinned." if note.pinned else "Unpinned."):
                return NoteList(self._index_of(note.id))
            return state
        if action is Action.DELETE:
            return ConfirmDelete(note.id, self._index_of(note.id))
        if action in (Action.CANCEL, Action.QUIT):
            return self._back(state.origin)
        return state

    def _back(self, origin):
        if isinstance(origin, Search):
            results = tuple(n.id for n in search(self.repository.list(), origin.query))
            return replace(origin, results=results, selected=min(origin.selected, max(len(results) - 1, 0)))
        if isinstance(origin, NoteList):
            return origin
        return NoteList()

    # --- Edit ---

    def _on_edit(self, state, action):
        if isinstance(action, TypeChar):
            if state.focus == "title":
                if action.char == "\n":
                    return replace(state, focus="content")
                return replace(state, title=state.title + action.char)
            return replace(state, content=state.content + action.char)
        if action is Action.BACKSPACE:
            if state.focus == "title":
                return replace(state, title=state.title[:-1])
            return replace(state, content=state.content[:-1])
        if action is Action.SWITCH_FIELD:
            return replace(state, focus="content" if state.focus == "title" else "title")
        if action in (Action.SAVE, Action.SUBMIT):
            return self._commit(state)
        if action is Action.CANCEL:
            if (state.title, state.content) != state.original:
                return ConfirmDiscard(state)
            return self._leave_edit(state)
        return state

    def _leave_edit(self, state):
        if state.note_id is not None:
            return NoteList(self._index_of(state.note_id))
        return NoteList()

    def _commit(self, state):
        if state.note_id is None:
            title = state.title
            if not title.strip() and not state.content.strip():
                self._info("Empty note discarded.")
                return NoteList()
            if not title.strip():
                title = next((line.strip() for line in state.content.splitlines() if line.strip()), "Untitled")
            note_id = self.repository.create(title, state.content)
            self._persist("Note created.")
            return NoteList(self._index_of(note_id))
        if (state.title, state.content) == state.original:
            self._info("No changes.")
        else:
            self.repository.update(state.note_id, title=state.title, content=state.content)
            self._persist("Note saved.")
        return NoteList(self._index_of(state.note_id))

    # --- Search ---

    def _on_search(self, state, action):
        if isinstance(action, TypeChar) or action is Action.BACKSPACE:
            if isinstance(action, TypeChar) and action.char == "\n":
                return state
            query = self._edit_text(state.query, action)
            results = tuple(n.id for n in search(self.repository.list(), query))
            return Search(query, results, 0)
        if action in (Action.UP, Action.DOWN, Action.PAGE_UP, Action.PAGE_DOWN):
            return replace(state, selected=self._move(state.selected, action, len(state.results)))
        if action in (Action.SELECT, Action.SUBMIT):
            if not state.results:
                return state
            return View(state.results[state.selected], origin=state)
        if action in (Action.CANCEL, Action.QUIT):
            return NoteList()
        return state

    # --- Confirmations ---

    def _on_confirm_delete(self, state, action):
        if action is Action.CONFIRM:
            self._delete(state.note_id)
            return NoteList(max(0, min(state.selected, len(self.repository) - 1)))
        if action in (Action.CANCEL, Action.QUIT):
            return NoteList(state.selected)
        return state

    def _on_confirm_discard(self, state, action):
        if action is Action.CONFIRM:
            self._info("Edit discarded.")
            return self._leave_edit(state.edit)
        if action is Action.SAVE:
            return self._commit(state.edit)
        if action is Action.CANCEL:
            return state.edit
        return state

    def _on_confirm_plaintext(self, state, action):
        if action in (Action.CANCEL, Action.QUIT):
            return NoteList(state.selected)
        if action is not Action.CONFIRM:
            return state
        if state.purpose == "export":
            self._export()
            return NoteList(state.selected)
        try:
            self.note_file.disable_encryption(self.repository)
        except StorageIOError as exc:
            self._error(f"Could not rewrite notes file: {exc}")
            return NoteList(state.selected)
        self._info("Encryption disabled. Notes are stored as plaintext.")
        return NoteList(state.selected)
