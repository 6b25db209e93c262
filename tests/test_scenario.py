"""End-to-end: notes survive restarts, search, delete and encryption."""

from pathlib import Path

import pytest

from crypt_notes import storage
from crypt_notes.app import Action, App, Locked, NoteList, TypeChar
from crypt_notes.crypto import KdfParams
from crypt_notes.errors import AuthenticationError
from crypt_notes.storage import NoteFile


def send(app: App, *actions) -> None:
    for action in actions:
        if isinstance(action, str):
            for char in action:
                app.dispatch(TypeChar(char))
        else:
            app.dispatch(action)


def test_notes_lifecycle(notes_path: Path, fast_kdf: KdfParams) -> None:
    app = App.open(NoteFile(notes_path), kdf_params=fast_kdf)
    send(app, Action.NEW, "Groceries", Action.SWITCH_FIELD, "milk, eggs", Action.SAVE)
    send(app, Action.NEW, "Work", Action.SWITCH_FIELD, "finish report", Action.SAVE)

    send(app, Action.SEARCH, "report")
    assert [n.title for n in app.snapshot().results] == ["Work"]
    send(app, Action.CANCEL)

    # Work is newest, so Groceries is second
    send(app, Action.DOWN, Action.DELETE, Action.CONFIRM)
    send(app, Action.QUIT)
    assert app.finished

    # Restart
    app = App.open(NoteFile(notes_path), kdf_params=fast_kdf)
    notes = app.snapshot().notes
    assert [(n.title, n.content) for n in notes] == [("Work", "finish report")]
    work = notes[0]

    send(app, Action.TOGGLE_ENCRYPTION, "correct-horse", Action.SUBMIT, "correct-horse", Action.SUBMIT)
    assert app.state == NoteList()
    send(app, Action.QUIT)

    with pytest.raises(AuthenticationError):
        storage.load(notes_path, "wrong-horse")
    assert storage.load(notes_path, "correct-horse").read(work.id) == work

    app = App.open(NoteFile(notes_path))
    assert isinstance(app.state, Locked)
    send(app, "correct-horse", Action.SUBMIT)
    assert app.snapshot().notes == (work,)
