"""
ui.py – Terminal user interface.

This module contains PasswordManagerApp, the textual application that
owns the terminal, plus the pure rendering helpers it uses.

Responsibilities:
  - Forward every key press to SessionController and keep the returned
    SessionState.
  - Carry out the effects the controller asks for: one-shot timers that
    clear status messages, persisting committed settings, quitting.
  - Draw the current state.  render_session() is a pure function of the
    state and the Theme, so it can be tested without a terminal.

Widget hierarchy
----------------
PasswordManagerApp
 └─ SessionView (Static, focusable)   ← receives all keys, shows the view
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Optional

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.style import Style
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from config import APP_VERSION, CLASS_LABELS, DEFAULT_LENGTH, MAX_LENGTH, MIN_LENGTH
from generator import GenerationSettings
from session import (
    ERROR, MENU_ITEMS, SITE_FIELD, SUCCESS, USERNAME_FIELD, WARNING,
    KeyPress, Paste, PersistSettings, Quit, ScheduleStatusClear, SessionController,
    SessionState, StatusTimeout, TextBuffer, ViewTag,
)

logger = logging.getLogger("SecurePasswordManager")

# Width of the bordered boxes, in cells.
BOX_WIDTH = 70

# Secrets in the list view are always shown as this many bullets.
MASK = "•" * 20

# Minimum delay when re-arming a status timer that fired early.
TIMER_RETRY_SECONDS = 0.05


@dataclass(frozen=True)
class Theme:
    """
    Read-only set of styles used by the renderer.

    Build it once with Theme.default() at start-up and hand it to the
    application.
    """

    title: Style
    border: Style
    password: Style
    info: Style
    success: Style
    warning: Style
    error: Style
    selected: Style
    placeholder: Style
    cursor: Style

    @classmethod
    def default(cls) -> "Theme":
        return cls(
            title=Style(bold=True, color="color(15)"),
            border=Style(color="color(250)"),
            password=Style(bold=True, color="color(14)"),
            info=Style(color="color(39)"),
            success=Style(color="color(35)"),
            warning=Style(color="color(214)"),
            error=Style(color="color(160)"),
            selected=Style(bold=True, color="color(15)"),
            placeholder=Style(dim=True),
            cursor=Style(reverse=True),
        )

    def for_level(self, level: str) -> Style:
        """Style of a status message with the given level."""
        return {SUCCESS: self.success, WARNING: self.warning, ERROR: self.error}.get(level, self.info)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def truncate(value: str, width: int = 18) -> str:
    """Shorten *value* to *width* cells, ending in '...' when cut."""
    if len(value) > width:
        return value[:width - 3] + "..."
    return value


def class_summary(settings: GenerationSettings) -> str:
    short = ("a-z", "A-Z", "0-9", "!@#")
    enabled = [name for name, on in zip(short, settings.flags()) if on]
    return " ".join(enabled) if enabled else "none"


def render_input(prompt: str, buffer: TextBuffer, theme: Theme,
                 focused: bool = True, placeholder: str = "") -> Text:
    """
    Render a one-line text input.

    The focused input shows its cursor as a reversed cell; an empty input
    shows *placeholder* dimmed.
    """
    line = Text(prompt)
    if not buffer.value and placeholder:
        if focused:
            line.append(placeholder[:1], style=theme.cursor + theme.placeholder)
            line.append(placeholder[1:], style=theme.placeholder)
        else:
            line.append(placeholder, style=theme.placeholder)
        return line

    if not focused:
        line.append(buffer.value)
        return line

    before = buffer.value[:buffer.cursor]
    at = buffer.value[buffer.cursor:buffer.cursor + 1] or " "
    after = buffer.value[buffer.cursor + 1:]
    line.append(before)
    line.append(at, style=theme.cursor)
    line.append(after)
    return line


def _render_welcome(state: SessionState, theme: Theme) -> List[RenderableType]:
    parts: List[RenderableType] = [Text("Secure Password Manager", style=theme.title), Text()]
    for index, option in enumerate(MENU_ITEMS):
        label = f"{index + 1}. {option}"
        if index == state.menu_cursor:
            parts.append(Text("> " + label, style=theme.selected))
        else:
            parts.append(Text("  " + label))
    parts.append(Text())
    parts.append(Text(
        f"Length: {state.settings.length} • Classes: {class_summary(state.settings)}",
        style=theme.info,
    ))
    parts.append(Text(
        "Use arrow keys or numbers to navigate • [Enter] to select • [G/L/S/Q] for quick access",
        style=theme.info,
    ))
    return parts


def _render_main(state: SessionState, theme: Theme) -> List[RenderableType]:
    parts: List[RenderableType] = [Text("Secure Password Generator", style=theme.title), Text()]
    if state.password:
        parts.append(Text("Generated Password:"))
        parts.append(Panel(
            Text(state.password, style=theme.password, justify="center"),
            box=box.ROUNDED,
            border_style=theme.border,
            width=BOX_WIDTH,
            padding=(1, 2),
        ))
        parts.append(Text(f"Length: {len(state.password)} characters", style=theme.info))
        parts.append(Text())
    parts.append(Text(
        "Press [R] to refresh • [C] to copy • [S] to save & copy • [L] to list "
        "• [Esc] to menu • [Q] to quit",
        style=theme.info,
    ))
    return parts


def _render_save(state: SessionState, theme: Theme) -> List[RenderableType]:
    return [
        Text("Save Password", style=theme.title),
        Text(),
        render_input("Site/Service Name: ", state.site_input, theme,
                     focused=state.save_focus == SITE_FIELD, placeholder="example.com"),
        render_input("Username: ", state.username_input, theme,
                     focused=state.save_focus == USERNAME_FIELD, placeholder="username"),
        Text(),
        Text("The password is copied to the clipboard when saved", style=theme.success),
        Text(),
        Text("Press [Tab] to switch fields • [Enter] to save • [Esc] to cancel", style=theme.info),
    ]


def _render_list(state: SessionState, theme: Theme) -> List[RenderableType]:
    table = Text()
    table.append("  " + f"{'Site':<18} | {'Username':<18} | {'Password':<20}" + "\n", style=theme.info)
    table.append("  " + "-" * 62 + "\n", style=theme.info)

    records = state.filtered_records()
    if not records:
        table.append("No passwords found.", style=theme.info)
    for index, record in enumerate(records):
        line = f"{truncate(record.site):<18} | {truncate(record.username):<18} | {MASK:<20}"
        if index == state.list_cursor:
            table.append("▶ " + line, style=theme.selected)
        else:
            table.append("  " + line)
        if index < len(records) - 1:
            table.append("\n")

    return [
        Text("Saved Passwords", style=theme.title),
        Text(),
        render_input("Filter: ", state.filter_input, theme, placeholder="filter..."),
        Text(),
        Panel(table, box=box.ROUNDED, border_style=theme.border, width=BOX_WIDTH),
        Text(f"{len(records)} of {len(state.loaded_records)} entries", style=theme.info),
        Text("Press [↑/↓] to navigate • [Enter] to copy • [Esc] to menu", style=theme.info),
    ]


def _render_settings(state: SessionState, theme: Theme) -> List[RenderableType]:
    parts: List[RenderableType] = [
        Text("Settings", style=theme.title),
        Text(),
        render_input("Password Length: ", state.length_input, theme, placeholder=str(DEFAULT_LENGTH)),
        Text(f"Range: {MIN_LENGTH}-{MAX_LENGTH} characters (default: {DEFAULT_LENGTH})", style=theme.info),
        Text(),
    ]
    for index, (label, on) in enumerate(zip(CLASS_LABELS, state.settings_form.flags())):
        mark = "[x]" if on else "[ ]"
        if index == state.settings_cursor:
            parts.append(Text(f"> {mark} {label}", style=theme.selected))
        else:
            parts.append(Text(f"  {mark} {label}"))
    parts.append(Text())
    parts.append(Text(
        "[↑/↓] to select • [Space] to toggle • type to edit length • [Enter] to save • [Esc] to cancel",
        style=theme.info,
    ))
    return parts


def _render_confirm_quit(state: SessionState, theme: Theme) -> List[RenderableType]:
    return [
        Text("Confirm Quit", style=theme.title),
        Text(),
        Text("Are you sure you want to quit?"),
        Text(),
        Text("Press [Y] to quit • [N] or [Esc] to cancel", style=theme.info),
    ]


_RENDERERS = {
    ViewTag.WELCOME:      _render_welcome,
    ViewTag.MAIN:         _render_main,
    ViewTag.SAVE:         _render_save,
    ViewTag.LIST:         _render_list,
    ViewTag.SETTINGS:     _render_settings,
    ViewTag.CONFIRM_QUIT: _render_confirm_quit,
}


def render_session(state: SessionState, theme: Theme) -> RenderableType:
    """Return the renderable for the current view plus any status message."""
    parts = _RENDERERS[state.current_view](state, theme)
    if state.status_message:
        parts.append(Text())
        parts.append(Text(state.status_message, style=theme.for_level(state.status_level)))
    return Group(*parts)


# ---------------------------------------------------------------------------
# Textual application
# ---------------------------------------------------------------------------

class SessionView(Static, can_focus=True):
    """Displays the session and forwards keys and pasted text to the application."""

    def on_key(self, event: events.Key) -> None:
        # Stopping here keeps textual's own tab/ctrl+c bindings out of the way.
        event.stop()
        event.prevent_default()
        self.app.handle_session_event(KeyPress(event.key, event.character))

    def on_paste(self, event: events.Paste) -> None:
        event.stop()
        self.app.handle_session_event(Paste(event.text))


class PasswordManagerApp(App):
    """
    The terminal application.

    Parameters
    ----------
    controller : SessionController
        Interprets key presses and timer events.
    ui_theme : Theme
        Styles used for drawing.
    state : SessionState
        Initial session state.
    on_settings_committed : callable, optional
        Called with the new GenerationSettings whenever the settings view
        commits; used to persist them to config.json.
    """

    TITLE = "Secure Password Manager"
    ENABLE_COMMAND_PALETTE = False
    SUB_TITLE = f"v{APP_VERSION}"

    CSS = """
    SessionView {
        padding: 1 2;
    }
    """

    def __init__(
        self,
        controller: SessionController,
        ui_theme: Theme,
        state: SessionState,
        on_settings_committed: Optional[Callable[[GenerationSettings], None]] = None,
    ) -> None:
        super().__init__()
        self.controller = controller
        self.ui_theme = ui_theme
        self.session_state = state
        self._on_settings_committed = on_settings_committed

    def compose(self) -> ComposeResult:
        yield SessionView(id="session")

    def on_mount(self) -> None:
        view = self.query_one(SessionView)
        view.focus()
        self._redraw()

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_session_event(self, event) -> None:
        """Run *event* through the controller, apply the effects and redraw."""
        self.session_state, effects = self.controller.handle(self.session_state, event)
        for effect in effects:
            self._apply(effect)
        if self.is_running:
            self._redraw()

    def _apply(self, effect) -> None:
        if isinstance(effect, ScheduleStatusClear):
            self.set_timer(effect.delay, partial(self._status_timer_fired, effect.expiry))
        elif isinstance(effect, PersistSettings):
            if self._on_settings_committed is not None:
                self._on_settings_committed(effect.settings)
        elif isinstance(effect, Quit):
            logger.info("Application closed")
            self.exit(return_code=effect.exit_code)
        else:
            logger.warning("Ignoring unknown effect %r", effect)

    def _status_timer_fired(self, expiry: float) -> None:
        self.handle_session_event(StatusTimeout())
        state = self.session_state
        if state.status_message and state.status_expiry == expiry:
            # Fired marginally before the expiry; try again once it is due.
            remaining = max(TIMER_RETRY_SECONDS, expiry - self.controller.clock())
            self.set_timer(remaining, partial(self._status_timer_fired, expiry))

    def _redraw(self) -> None:
        self.query_one(SessionView).update(render_session(self.session_state, self.ui_theme))
