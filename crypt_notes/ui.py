"""curses front end: draws App snapshots and turns key presses into actions."""

import curses
import logging

from . import APP_NAME
from .app import Action, TypeChar, wrap_text
from .errors import ConfigError

logger = logging.getLogger(__name__)

# --- UI Elements ---
HEADER = [
    r"  ___                _     _  _     _           ",
    r" / __|_ _ _  _ _ __| |_  | \| |___| |_ ___ ___ ",
    r"| (__| '_| || | '_ \  _| | .` / _ \  _/ -_|_-< ",
    r" \___|_|  \_, | .__/\__| |_|\_\___/\__\___/__/ ",
    r"          |__/|_|                              ",
]

# --- Color Pairs (initialized in main) ---
COLOR_PAIR_DEFAULT = 1
COLOR_PAIR_HEADER = 2
COLOR_PAIR_MENU_ACTIVE = 3
COLOR_PAIR_MENU_INACTIVE = 4
COLOR_PAIR_INFO = 5
COLOR_PAIR_ERROR = 6
COLOR_PAIR_SUCCESS = 7
COLOR_PAIR_INPUT = 8
COLOR_PAIR_BORDER = 9

COLOR_PAIRS = {
    "default": COLOR_PAIR_DEFAULT,
    "header": COLOR_PAIR_HEADER,
    "menu_active": COLOR_PAIR_MENU_ACTIVE,
    "menu_inactive": COLOR_PAIR_MENU_INACTIVE,
    "info": COLOR_PAIR_INFO,
    "error": COLOR_PAIR_ERROR,
    "success": COLOR_PAIR_SUCCESS,
    "input": COLOR_PAIR_INPUT,
    "border": COLOR_PAIR_BORDER,
}

CURSES_COLORS = {
    "default": -1,
    "black": curses.COLOR_BLACK,
    "red": curses.COLOR_RED,
    "green": curses.COLOR_GREEN,
    "yellow": curses.COLOR_YELLOW,
    "blue": curses.COLOR_BLUE,
    "magenta": curses.COLOR_MAGENTA,
    "cyan": curses.COLOR_CYAN,
    "white": curses.COLOR_WHITE,
}

# --- Key handling ---
ENTER_KEYS = (curses.KEY_ENTER, 10, 13)
NAMED_KEYS = {
    "Enter": ENTER_KEYS,
    "Esc": (27,),
    "Tab": (9,),
    "Backspace": (curses.KEY_BACKSPACE, 127, 8),
    "Delete": (curses.KEY_DC,),
    "Up": (curses.KEY_UP,),
    "Down": (curses.KEY_DOWN,),
    "Left": (curses.KEY_LEFT,),
    "Right": (curses.KEY_RIGHT,),
    "PageUp": (curses.KEY_PPAGE,),
    "PageDown": (curses.KEY_NPAGE,),
    "Home": (curses.KEY_HOME,),
    "End": (curses.KEY_END,),
}

# Which actions each mode listens for; anything else is ignored there
MODE_ACTIONS = {
    "locked": ("submit", "cancel", "backspace"),
    "set_password": ("submit", "cancel", "backspace"),
    "list": ("up", "down", "page_up", "page_down", "select", "new", "edit", "delete", "search",
             "save", "toggle_pin", "toggle_encryption", "export", "quit"),
    "view": ("up", "down", "page_up", "page_down", "edit", "delete", "toggle_pin", "cancel", "quit"),
    "edit": ("save", "cancel", "backspace", "switch_field"),
    "search": ("up", "down", "page_up", "page_down", "submit", "cancel", "backspace"),
    "confirm_delete": ("confirm", "cancel"),
    "confirm_plaintext": ("confirm", "cancel"),
    "confirm_discard": ("confirm", "save", "cancel"),
}

# Modes where printable keys are text, not commands
TEXT_MODES = {"locked", "set_password", "edit", "search"}


def parse_key(name):
    """Returns the key codes for a key name such as "q", "Enter", "F5" or "Ctrl+s"."""
    if name in NAMED_KEYS:
        return NAMED_KEYS[name]
    if len(name) == 1:
        return (ord(name),)
    if name.startswith("F") and name[1:].isdigit() and 1 <= int(name[1:]) <= 12:
        return (curses.KEY_F0 + int(name[1:]),)
    if name.lower().startswith("ctrl+") and len(name) == 6 and name[5].isalpha():
        return (ord(name[5].lower()) - ord("a") + 1,)
    raise ConfigError(f"unknown key name {name!r}")


def build_keymap(bindings):
    """Maps each action name to the set of key codes bound to it."""
    return {action: frozenset(code for key in keys for code in parse_key(key)) for action, keys in bindings.items()}


def normalize_key(key):
    """get_wch() gives str for characters and int for special keys; control characters become ints."""
    if isinstance(key, str) and len(key) == 1 and (ord(key) < 32 or ord(key) == 127):
        return ord(key)
    return key


def translate_key(key, mode, keymap):
    """Turns one key press into a logical action for the given mode, or None."""
    key = normalize_key(key)
    if mode in TEXT_MODES:
        if isinstance(key, str):
            return TypeChar(key)
        if mode == "edit" and key in ENTER_KEYS:
            return TypeChar("\n")
    elif isinstance(key, str) and len(key) == 1:
        key = ord(key)
    for action in MODE_ACTIONS.get(mode, ()):
        if key in keymap.get(action, ()):
            return Action(action)
    return None


def key_label(bindings, action):
    """First configured key of an action, for footer hints."""
    keys = bindings.get(action) or ["?"]
    return keys[0]


# --- Drawing helpers ---

def init_colors(colors):
    """Creates the color pairs from the configured "fg/bg" names."""
    if not curses.has_colors():
        return
    curses.start_color()
    curses.use_default_colors() # Allow using terminal default background
    for element, pair in COLOR_PAIRS.items():
        fg, bg = colors.get(element, "white/default").split("/")
        try:
            curses.init_pair(pair, CURSES_COLORS[fg], CURSES_COLORS[bg])
        except curses.error:
            logger.debug("Terminal refused color pair %s", element)


def put(stdscr, y, x, text, attr=0):
    """addstr that clips to the screen and ignores edge errors."""
    max_y, max_x = stdscr.getmaxyx()
    if y < 0 or y >= max_y or x >= max_x:
        return
    try:
        stdscr.addstr(y, x, text[:max(0, max_x - x - 1)], attr)
    except curses.error:
        pass # Writing to the bottom-right corner raises


def draw_header(stdscr, snapshot):
    """Draws the banner (or a one-line title on small terminals). Returns the next free row."""
    max_y, max_x = stdscr.getmaxyx()
    lock = "encrypted" if snapshot.encrypted else "plaintext"
    subtitle = f"{snapshot.path} [{lock}]"
    if max_y >= 24 and max_x > len(HEADER[0]):
        for i, line in enumerate(HEADER):
            put(stdscr, i, max(0, (max_x - len(line)) // 2), line, curses.color_pair(COLOR_PAIR_HEADER) | curses.A_BOLD)
        put(stdscr, len(HEADER), max(0, (max_x - len(subtitle)) // 2), subtitle, curses.color_pair(COLOR_PAIR_INFO))
        return len(HEADER) + 2
    put(stdscr, 0, 1, f"{APP_NAME} - {subtitle}", curses.color_pair(COLOR_PAIR_HEADER) | curses.A_BOLD)
    return 2


def draw_message(stdscr, message, color_pair):
    """Displays a status message on the line above the footer."""
    max_y, max_x = stdscr.getmaxyx()
    y = max_y - 2
    try:
        stdscr.move(y, 0)
        stdscr.clrtoeol()
    except curses.error:
        return
    x = max(0, (max_x - len(message)) // 2)
    put(stdscr, y, x, message, curses.color_pair(color_pair) | curses.A_BOLD)


def draw_footer(stdscr, instructions):
    max_y, max_x = stdscr.getmaxyx()
    put(stdscr, max_y - 1, 0, instructions.ljust(max_x), curses.color_pair(COLOR_PAIR_INFO) | curses.A_REVERSE)


def draw_rows(stdscr, top, height, rows, selected, offset):
    """Draws a scrolling list of rows with the selected one highlighted."""
    max_y, max_x = stdscr.getmaxyx()
    for i in range(height):
        idx = offset + i
        if idx >= len(rows):
            break
        if idx == selected:
            attr = curses.color_pair(COLOR_PAIR_MENU_ACTIVE) | curses.A_BOLD | curses.A_REVERSE
            text = f"-> {rows[idx]}"
        else:
            attr = curses.color_pair(COLOR_PAIR_MENU_INACTIVE)
            text = f"   {rows[idx]}"
        put(stdscr, top + i, 2, text.ljust(max_x - 4), attr)
    # Scroll indicators
    if offset > 0:
        put(stdscr, top, max_x - 8, "^ more", curses.color_pair(COLOR_PAIR_INFO))
    if offset + height < len(rows):
        put(stdscr, top + height - 1, max_x - 8, "v more", curses.color_pair(COLOR_PAIR_INFO))


def list_offset(selected, height, count):
    """First visible row so that the selection stays on screen."""
    if height <= 0 or count <= height:
        return 0
    return max(0, min(selected - height // 2, count - height))


def note_row(note):
    pin = "*" if note.pinned else " "
    title = note.title or "(untitled)"
    stamp = note.updated_at.astimezone().strftime("%Y-%m-%d %H:%M")
    return f"{pin} {title}  ({stamp})"


# --- Screens ---

def render_password(stdscr, top, snapshot):
    state = snapshot.state
    if snapshot.mode == "locked":
        put(stdscr, top, 2, "The notes file is encrypted. Password required.", curses.color_pair(COLOR_PAIR_INFO))
        prompt, value = "Password: ", state.password
        if state.attempts:
            put(stdscr, top + 1, 2, f"Failed attempts: {state.attempts}", curses.color_pair(COLOR_PAIR_ERROR))
    else:
        put(stdscr, top, 2, "Choose a password to encrypt your notes (8 characters or more).",
            curses.color_pair(COLOR_PAIR_INFO))
        if state.confirming:
            prompt, value = "Confirm password: ", state.confirm
        else:
            prompt, value = "New password: ", state.password
    put(stdscr, top + 3, 2, prompt, curses.color_pair(COLOR_PAIR_INPUT))
    put(stdscr, top + 3, 2 + len(prompt), "*" * len(value), curses.color_pair(COLOR_PAIR_INPUT) | curses.A_BOLD)


def render_list(stdscr, top, snapshot):
    max_y, max_x = stdscr.getmaxyx()
    if not snapshot.notes:
        put(stdscr, top, 2, "No notes in the crypt yet. Press the new-note key to write one.",
            curses.color_pair(COLOR_PAIR_INFO))
        return
    height = max_y - top - 3
    selected = min(snapshot.state.selected, len(snapshot.notes) - 1)
    rows = [note_row(n) for n in snapshot.notes]
    put(stdscr, top, 2, f"{len(rows)} note(s)", curses.color_pair(COLOR_PAIR_INFO))
    draw_rows(stdscr, top + 1, height - 1, rows, selected, list_offset(selected, height - 1, len(rows)))


def render_view(stdscr, top, snapshot, width):
    max_y, max_x = stdscr.getmaxyx()
    note = snapshot.note
    if note is None:
        return
    title = note.title or "(untitled)"
    if note.pinned:
        title += "  [pinned]"
    put(stdscr, top, 2, title, curses.color_pair(COLOR_PAIR_HEADER) | curses.A_BOLD)
    created = note.created_at.astimezone().strftime("%Y-%m-%d %H:%M")
    updated = note.updated_at.astimezone().strftime("%Y-%m-%d %H:%M")
    put(stdscr, top + 1, 2, f"created {created}   updated {updated}", curses.color_pair(COLOR_PAIR_BORDER))
    rows = wrap_text(note.content, width)
    height = max_y - top - 5
    scroll = min(snapshot.state.scroll, max(0, len(rows) - 1))
    for i, row in enumerate(rows[scroll:scroll + max(height, 0)]):
        put(stdscr, top + 3 + i, 2, row)
    if scroll > 0:
        put(stdscr, top + 3, max_x - 3, "^^", curses.color_pair(COLOR_PAIR_INFO))
    if scroll + height < len(rows):
        put(stdscr, top + 2 + height, max_x - 3, "vv", curses.color_pair(COLOR_PAIR_INFO))


def render_edit(stdscr, top, snapshot, width):
    """Draws the editor and leaves the cursor at the end of the focused field."""
    max_y, max_x = stdscr.getmaxyx()
    state = snapshot.state
    heading = "New note" if state.note_id is None else "Editing note"
    put(stdscr, top, 2, heading, curses.color_pair(COLOR_PAIR_INFO) | curses.A_BOLD)
    title_attr = curses.color_pair(COLOR_PAIR_INPUT) | (curses.A_BOLD if state.focus == "title" else 0)
    put(stdscr, top + 2, 2, "Title: ", curses.color_pair(COLOR_PAIR_BORDER))
    shown_title = state.title[-(max_x - 12):] if max_x > 12 else ""
    put(stdscr, top + 2, 9, shown_title, title_attr)
    put(stdscr, top + 3, 2, "Content:", curses.color_pair(COLOR_PAIR_BORDER))

    rows = wrap_text(state.content, width)
    height = max(max_y - top - 7, 1)
    visible = rows[-height:]
    for i, row in enumerate(visible):
        put(stdscr, top + 4 + i, 2, row, curses.color_pair(COLOR_PAIR_INPUT))

    if state.focus == "title":
        cursor = (top + 2, 9 + len(shown_title))
    else:
        cursor = (top + 4 + len(visible) - 1, 2 + len(visible[-1]))
    try:
        curses.curs_set(1)
        stdscr.move(min(cursor[0], max_y - 3), min(cursor[1], max_x - 2))
    except curses.error:
        pass # Cursor visibility is not supported everywhere


def render_search(stdscr, top, snapshot):
    max_y, max_x = stdscr.getmaxyx()
    state = snapshot.state
    put(stdscr, top, 2, "Search: ", curses.color_pair(COLOR_PAIR_BORDER))
    put(stdscr, top, 10, state.query, curses.color_pair(COLOR_PAIR_INPUT) | curses.A_BOLD)
    if not state.query:
        put(stdscr, top + 2, 2, "Type to search titles and contents.", curses.color_pair(COLOR_PAIR_INFO))
    elif not snapshot.results:
        put(stdscr, top + 2, 2, "Nothing found.", curses.color_pair(COLOR_PAIR_INFO))
    else:
        rows = [note_row(n) for n in snapshot.results]
        height = max_y - top - 5
        draw_rows(stdscr, top + 2, height, rows, state.selected, list_offset(state.selected, height, len(rows)))


def render_confirm(stdscr, top, snapshot, bindings):
    yes, no = key_label(bindings, "confirm"), key_label(bindings, "cancel")
    if snapshot.mode == "confirm_delete":
        title = snapshot.note.title if snapshot.note else ""
        question = f"Delete \"{title or '(untitled)'}\"? This cannot be undone."
    elif snapshot.mode == "confirm_discard":
        put(stdscr, top + 1, 2, "This note has unsaved changes.", curses.color_pair(COLOR_PAIR_ERROR) | curses.A_BOLD)
        put(stdscr, top + 3, 2, f"[{yes}] discard   [{key_label(bindings, 'save')}] save   [{no}] keep editing",
            curses.color_pair(COLOR_PAIR_INFO))
        return
    elif snapshot.state.purpose == "export":
        question = "Export ALL notes as unencrypted plaintext?"
    else:
        question = "Remove encryption and store notes as plaintext?"
    put(stdscr, top + 1, 2, question, curses.color_pair(COLOR_PAIR_ERROR) | curses.A_BOLD)
    put(stdscr, top + 3, 2, f"[{yes}] yes   [{no}] no", curses.color_pair(COLOR_PAIR_INFO))


def footer_for(mode, bindings):
    k = lambda action: key_label(bindings, action)
    return {
        "locked": f" {k('submit')} unlock | {k('cancel')} quit",
        "set_password": f" {k('submit')} continue | {k('cancel')} cancel",
        "list": (f" {k('new')} new | {k('select')} view | {k('edit')} edit | {k('delete')} delete | "
                 f"{k('search')} search | {k('toggle_pin')} pin | {k('save')} save | {k('export')} export | "
                 f"{k('toggle_encryption')} encryption | {k('quit')} quit"),
        "view": f" {k('up')}/{k('down')} scroll | {k('edit')} edit | {k('toggle_pin')} pin | {k('cancel')} back",
        "edit": f" {k('save')} save | {k('switch_field')} switch field | {k('cancel')} discard",
        "search": f" {k('up')}/{k('down')} move | {k('submit')} open | {k('cancel')} back",
        "confirm_delete": f" {k('confirm')} delete | {k('cancel')} keep",
        "confirm_plaintext": f" {k('confirm')} continue | {k('cancel')} cancel",
        "confirm_discard": f" {k('confirm')} discard | {k('save')} save | {k('cancel')} keep editing",
    }.get(mode, "")


def render(stdscr, app, bindings):
    """Draws one frame for the current state."""
    stdscr.erase()
    max_y, max_x = stdscr.getmaxyx()
    width = max(max_x - 4, 10)
    app.wrap_width = width
    snapshot = app.snapshot()
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    top = draw_header(stdscr, snapshot)

    if snapshot.mode in ("locked", "set_password"):
        render_password(stdscr, top, snapshot)
    elif snapshot.mode == "list":
        render_list(stdscr, top, snapshot)
    elif snapshot.mode == "view":
        render_view(stdscr, top, snapshot, width)
    elif snapshot.mode == "search":
        render_search(stdscr, top, snapshot)
    elif snapshot.mode in ("confirm_delete", "confirm_plaintext", "confirm_discard"):
        render_confirm(stdscr, top, snapshot, bindings)

    draw_footer(stdscr, footer_for(snapshot.mode, bindings))
    if snapshot.status:
        draw_message(stdscr, snapshot.status, COLOR_PAIR_ERROR if snapshot.is_error else COLOR_PAIR_SUCCESS)
    if snapshot.mode == "edit":
        render_edit(stdscr, top, snapshot, width)  # last, so the cursor stays in the editor
    stdscr.refresh()
    return snapshot


def needs_key_derivation(snapshot, action):
    """True when dispatching this action will run the (slow) key derivation."""
    if action is not Action.SUBMIT:
        return False
    if snapshot.mode == "locked":
        return bool(snapshot.state.password)
    return snapshot.mode == "set_password" and snapshot.state.confirming


# --- Main loop ---

def main(stdscr, app, config):
    """Runs the app until it reaches its exit state. Returns the exit code."""
    # --- Curses Initialization ---
    curses.curs_set(0) # Hide cursor
    stdscr.keypad(True) # Enable keypad mode (arrows, etc.)
    curses.raw() # Ctrl+S/Ctrl+Q reach us instead of the terminal
    try:
        curses.set_escdelay(25)
    except (AttributeError, curses.error):
        pass
    init_colors(config.colors)
    stdscr.bkgd(" ", curses.color_pair(COLOR_PAIR_DEFAULT))
    keymap = build_keymap(config.keybindings)

    while not app.finished:
        snapshot = render(stdscr, app, config.keybindings)
        try:
            key = stdscr.get_wch()
        except KeyboardInterrupt:
            key = 27 # Treat Ctrl+C like Esc
        except curses.error:
            continue # No input (e.g. interrupted by a resize)
        if key == curses.KEY_RESIZE:
            continue

        action = translate_key(key, snapshot.mode, keymap)
        if action is None:
            continue
        if needs_key_derivation(snapshot, action):
            draw_message(stdscr, "Deriving key, this takes a moment...", COLOR_PAIR_INFO)
            stdscr.refresh()
        app.dispatch(action)

    return app.state.code


def run_tui(app, config):
    """Wraps main() in curses.wrapper so the terminal is always restored."""
    return curses.wrapper(main, app, config)
