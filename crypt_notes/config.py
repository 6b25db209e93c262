"""
Configuration management for Crypt Notes.

Uses XDG base directories:
- Config: ~/.config/crypt-notes/config.toml (or CRYPT_NOTES_CONFIG)
- Logs: ~/.local/state/crypt-notes/

The notes file itself defaults to notes.json in the launch directory.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import tomli

from .errors import ConfigError

DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_STATE_HOME = Path.home() / ".local" / "state"

ACTIONS = (
    "up", "down", "page_up", "page_down", "select", "new", "edit", "delete",
    "confirm", "cancel", "search", "submit", "save", "backspace", "switch_field",
    "toggle_pin", "toggle_encryption", "export", "quit",
)

DEFAULT_KEYBINDINGS = {
    "up": ["Up", "k"],
    "down": ["Down", "j"],
    "page_up": ["PageUp"],
    "page_down": ["PageDown"],
    "select": ["Enter", "v"],
    "new": ["n"],
    "edit": ["e"],
    "delete": ["Delete", "d"],
    "confirm": ["y", "Y"],
    "cancel": ["Esc", "n", "N"],
    "search": ["/"],
    "submit": ["Enter"],
    "save": ["Ctrl+s", "Ctrl+d"],
    "backspace": ["Backspace"],
    "switch_field": ["Tab"],
    "toggle_pin": ["p"],
    "toggle_encryption": ["Ctrl+t"],
    "export": ["Ctrl+e"],
    "quit": ["q"],
}

COLOR_NAMES = ("default", "black", "red", "green", "yellow", "blue", "magenta", "cyan", "white")

# Same pairs the screen is drawn with, "foreground/background"
DEFAULT_COLORS = {
    "default": "white/default",
    "header": "red/default",
    "menu_active": "black/green",
    "menu_inactive": "cyan/default",
    "info": "yellow/default",
    "error": "white/red",
    "success": "green/default",
    "input": "white/default",
    "border": "magenta/default",
}

DEFAULT_CONFIG_TEXT = """\
# Crypt Notes configuration

[storage]
# Relative paths are resolved against the launch directory.
notes_file = "notes.json"
# Ask for a password and encrypt the notes file if it is not encrypted yet.
encryption_enabled = false

[behavior]
confirm_delete = true
# 0 means unlimited attempts.
max_unlock_attempts = 3
export_file = "crypt-notes-export.json"

[logging]
level = "INFO"
# file = "/path/to/crypt-notes.log"

[keybindings]
# Key names: single characters, Enter, Esc, Tab, Backspace, Delete, Up, Down,
# Left, Right, PageUp, PageDown, Home, End, F1-F12, Ctrl+<letter>.
up = ["Up", "k"]
down = ["Down", "j"]
page_up = ["PageUp"]
page_down = ["PageDown"]
select = ["Enter", "v"]
new = ["n"]
edit = ["e"]
delete = ["Delete", "d"]
confirm = ["y", "Y"]
cancel = ["Esc", "n", "N"]
search = ["/"]
submit = ["Enter"]
save = ["Ctrl+s", "Ctrl+d"]
backspace = ["Backspace"]
switch_field = ["Tab"]
toggle_pin = ["p"]
toggle_encryption = ["Ctrl+t"]
export = ["Ctrl+e"]
quit = ["q"]

[colors]
# "foreground/background"; names: default black red green yellow blue magenta cyan white
default = "white/default"
header = "red/default"
menu_active = "black/green"
menu_inactive = "cyan/default"
info = "yellow/default"
error = "white/red"
success = "green/default"
input = "white/default"
border = "magenta/default"
"""


@dataclass
class Config:
    notes_file: Path = Path("notes.json")
    encryption_enabled: bool = False
    confirm_delete: bool = True
    max_unlock_attempts: int = 3
    export_file: Path = Path("crypt-notes-export.json")
    log_level: str = "INFO"
    log_file: Path | None = None
    keybindings: dict = field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_KEYBINDINGS.items()})
    colors: dict = field(default_factory=lambda: dict(DEFAULT_COLORS))


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/crypt-notes)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "crypt-notes"


def get_config_path() -> Path:
    """Get the path to config.toml."""
    if env_path := os.environ.get("CRYPT_NOTES_CONFIG"):
        return Path(env_path)
    return get_config_dir() / "config.toml"


def get_log_dir() -> Path:
    base = Path(os.environ.get("XDG_STATE_HOME", DEFAULT_STATE_HOME))
    return base / "crypt-notes"


def write_default_config(path=None) -> Path:
    """Write the default config, owner-only, refusing to overwrite."""
    path = Path(path) if path else get_config_path()
    if path.exists():
        raise ConfigError(f"{path} already exists")
    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
        os.chmod(path, 0o600)
    except OSError as exc:
        raise ConfigError(f"cannot write {path}: {exc}") from exc
    return path


def load_config(path=None) -> Config:
    """
    Load configuration from config.toml.

    Returns the defaults if the file doesn't exist.
    """
    path = Path(path) if path else get_config_path()
    if not path.exists():
        return Config()
    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except tomli.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    return parse_config(data)


def _section(data, name):
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _typed(section, name, key, kind, default):
    value = section.get(key, default)
    if kind is int and isinstance(value, bool) or not isinstance(value, kind):
        raise ConfigError(f"{name}.{key} must be of type {kind.__name__}")
    return value


def parse_config(data: dict) -> Config:
    """Build a Config from parsed TOML, filling in defaults."""
    config = Config()
    storage = _section(data, "storage")
    behavior = _section(data, "behavior")
    logging_section = _section(data, "logging")

    config.notes_file = Path(_typed(storage, "storage", "notes_file", str, str(config.notes_file))).expanduser()
    config.encryption_enabled = _typed(storage, "storage", "encryption_enabled", bool, config.encryption_enabled)
    config.confirm_delete = _typed(behavior, "behavior", "confirm_delete", bool, config.confirm_delete)
    config.max_unlock_attempts = _typed(behavior, "behavior", "max_unlock_attempts", int, config.max_unlock_attempts)
    if config.max_unlock_attempts < 0:
        raise ConfigError("behavior.max_unlock_attempts must not be negative")
    config.export_file = Path(_typed(behavior, "behavior", "export_file", str, str(config.export_file))).expanduser()

    config.log_level = _typed(logging_section, "logging", "level", str, config.log_level).upper()
    if config.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"logging.level {config.log_level!r} is not a log level")
    if "file" in logging_section:
        config.log_file = Path(_typed(logging_section, "logging", "file", str, "")).expanduser()

    for action, keys in _section(data, "keybindings").items():
        if action not in ACTIONS:
            raise ConfigError(f"unknown action {action!r} in [keybindings]")
        if isinstance(keys, str):
            keys = [keys]
        if not isinstance(keys, list) or not all(isinstance(k, str) and k for k in keys):
            raise ConfigError(f"keybindings.{action} must be a key name or a list of key names")
        config.keybindings[action] = keys

    for element, value in _section(data, "colors").items():
        if element not in DEFAULT_COLORS:
            raise ConfigError(f"unknown color element {element!r}")
        parts = value.split("/") if isinstance(value, str) else []
        if len(parts) != 2 or any(p.strip().lower() not in COLOR_NAMES for p in parts):
            raise ConfigError(f"colors.{element} must look like \"white/default\"")
        config.colors[element] = value.lower().replace(" ", "")
    return config
