"""Tests for key parsing and translation. No terminal is needed."""

import curses

import pytest

from crypt_notes.app import Action, Locked, SetPassword, Snapshot, TypeChar
from crypt_notes.config import DEFAULT_KEYBINDINGS
from crypt_notes.errors import ConfigError
from crypt_notes.ui import build_keymap, footer_for, list_offset, needs_key_derivation, parse_key, translate_key


@pytest.fixture()
def keymap() -> dict:
    return build_keymap(DEFAULT_KEYBINDINGS)


class TestParseKey:
    def test_single_character(self) -> None:
        assert parse_key("q") == (ord("q"),)

    def test_named_keys(self) -> None:
        assert parse_key("Esc") == (27,)
        assert 10 in parse_key("Enter")
        assert parse_key("Up") == (curses.KEY_UP,)

    def test_control_keys(self) -> None:
        assert parse_key("Ctrl+s") == (19,)
        assert parse_key("Ctrl+E") == (5,)

    def test_function_keys(self) -> None:
        assert parse_key("F5") == (curses.KEY_F0 + 5,)

    @pytest.mark.parametrize("name", ["F13", "Ctrl+1", "Hyper+x", "Escape"])
    def test_unknown_names(self, name: str) -> None:
        with pytest.raises(ConfigError):
            parse_key(name)


class TestTranslateKey:
    @pytest.mark.parametrize(
        ("key", "mode", "expected"),
        [
            ("q", "list", Action.QUIT),
            ("n", "list", Action.NEW),
            ("\n", "list", Action.SELECT),
            ("/", "list", Action.SEARCH),
            (curses.KEY_DOWN, "list", Action.DOWN),
            (curses.KEY_DC, "list", Action.DELETE),
            ("\x05", "list", Action.EXPORT),
            ("\x14", "list", Action.TOGGLE_ENCRYPTION),
            ("\x1b", "view", Action.CANCEL),
            ("y", "confirm_delete", Action.CONFIRM),
            ("n", "confirm_plaintext", Action.CANCEL),
            ("y", "confirm_discard", Action.CONFIRM),
            ("\x13", "confirm_discard", Action.SAVE),
            ("\x1b", "confirm_discard", Action.CANCEL),
            ("\n", "locked", Action.SUBMIT),
            ("\x7f", "locked", Action.BACKSPACE),
            (curses.KEY_BACKSPACE, "search", Action.BACKSPACE),
            ("\x13", "edit", Action.SAVE),
            ("\t", "edit", Action.SWITCH_FIELD),
            ("\x1b", "edit", Action.CANCEL),
        ],
    )
    def test_bound_keys(self, keymap: dict, key, mode: str, expected: Action) -> None:
        assert translate_key(key, mode, keymap) is expected

    def test_text_modes_type_characters(self, keymap: dict) -> None:
        assert translate_key("q", "edit", keymap) == TypeChar("q")
        assert translate_key("n", "search", keymap) == TypeChar("n")
        assert translate_key("é", "locked", keymap) == TypeChar("é")

    def test_enter_in_editor_is_newline(self, keymap: dict) -> None:
        assert translate_key("\n", "edit", keymap) == TypeChar("\n")
        assert translate_key(curses.KEY_ENTER, "edit", keymap) == TypeChar("\n")

    def test_unbound_key(self, keymap: dict) -> None:
        assert translate_key("x", "list", keymap) is None
        assert translate_key("e", "confirm_delete", keymap) is None

    def test_custom_binding(self) -> None:
        keymap = build_keymap({**DEFAULT_KEYBINDINGS, "quit": ["F10"]})
        assert translate_key(curses.KEY_F0 + 10, "list", keymap) is Action.QUIT
        assert translate_key("q", "list", keymap) is None


class TestHelpers:
    def test_list_offset_keeps_selection_visible(self) -> None:
        assert list_offset(0, 10, 5) == 0
        assert list_offset(50, 10, 100) == 45
        assert list_offset(99, 10, 100) == 90

    def test_footer_uses_configured_keys(self) -> None:
        bindings = {**DEFAULT_KEYBINDINGS, "quit": ["F10"]}
        assert "F10 quit" in footer_for("list", bindings)

    def test_key_derivation_hint(self) -> None:
        def snap(state):
            return Snapshot(state.mode, state, (), None, (), None, False, False, "notes.json")

        assert needs_key_derivation(snap(Locked(password="x")), Action.SUBMIT)
        assert not needs_key_derivation(snap(Locked()), Action.SUBMIT)
        assert not needs_key_derivation(snap(SetPassword(password="x")), Action.SUBMIT)
        assert needs_key_derivation(snap(SetPassword(confirming=True)), Action.SUBMIT)
        assert not needs_key_derivation(snap(Locked(password="x")), Action.CANCEL)
