"""
session.py – Session state and the view state machine.

This module holds everything the interactive loop needs that is not
drawing on the screen:

  - SessionState, an immutable snapshot of the whole session (current
    view, generated password, settings, text inputs, cursors, status
    message, cached records).
  - TextBuffer, the single-line editor behind every text input.
  - The events fed into the machine (KeyPress, Paste, StatusTimeout) and the
    effects it asks the application to carry out (ScheduleStatusClear,
    PersistSettings, Quit).
  - SessionController, whose handle() method maps (state, event) to
    (new state, effects).  It calls the password generator, the
    credential store and the clipboard, and turns every failure from
    them into a status message; nothing raised by those collaborators
    escapes handle().

Views and their transitions
---------------------------
WELCOME ──1/g──> MAIN ──s──> SAVE ──enter──> MAIN
   │ ──2/l──> LIST ──esc──> WELCOME
   │ ──3/s──> SETTINGS ──enter/esc──> WELCOME
   └ ──4/q──> CONFIRM_QUIT ──y──> (quit)  ──n/esc──> WELCOME

ctrl+c quits from any view.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from config import DEFAULT_LENGTH, MAX_LENGTH, MIN_LENGTH, STATUS_SECONDS
from clipboard_access import ClipboardError
from generator import GenerationError, GenerationSettings, generate
from storage import CredentialRecord, StoreError, filter_records

logger = logging.getLogger("SecurePasswordManager")

# Entries of the welcome menu, in cursor order.
MENU_ITEMS = ("Generate New Password", "View Saved Passwords", "Settings", "Quit Application")

# Status levels, used by the renderer to pick a colour.
INFO    = "info"
SUCCESS = "success"
WARNING = "warning"
ERROR   = "error"

# Save-view fields that can hold focus.
SITE_FIELD     = "site"
USERNAME_FIELD = "username"


class ViewTag(Enum):
    WELCOME      = "welcome"
    MAIN         = "main"
    SAVE         = "save"
    LIST         = "list"
    SETTINGS     = "settings"
    CONFIRM_QUIT = "confirm_quit"


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

class InputValidationError(ValueError):
    """
    Raised when a form value is rejected.

    Attributes
    ----------
    field : str or None
        The name of the input that caused the error ('site', 'length').
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field: Optional[str] = field


class EmptyField(InputValidationError):
    """A required field is blank after trimming."""


class UnparsableLength(InputValidationError):
    """The length input is not a whole number."""


class OutOfRangeLength(InputValidationError):
    """The length input is a number outside [MIN_LENGTH, MAX_LENGTH]."""


def parse_length(text: str) -> int:
    """
    Parse the settings-view length input.

    Only plain ASCII digits are accepted, surrounding whitespace aside.

    Raises
    ------
    UnparsableLength
        If *text* is empty or not a whole number.
    OutOfRangeLength
        If the number is below MIN_LENGTH or above MAX_LENGTH.
    """
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        raise UnparsableLength(f"Invalid length {text!r}", field="length")
    length = int(text)
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        raise OutOfRangeLength(
            f"Length {length} out of range ({MIN_LENGTH}-{MAX_LENGTH})", field="length"
        )
    return length


def require_field(value: str, name: str, label: str) -> str:
    """Return *value* stripped, or raise EmptyField naming *label*."""
    value = value.strip()
    if not value:
        raise EmptyField(f"{label} cannot be empty", field=name)
    return value


# ---------------------------------------------------------------------------
# Text input buffer
# ---------------------------------------------------------------------------

# Keys that move or delete inside a TextBuffer.
_EDIT_KEYS = ("backspace", "delete", "left", "right", "home", "end")


@dataclass(frozen=True)
class TextBuffer:
    """Single-line text input with a cursor and a character limit."""

    value: str = ""
    cursor: int = 0
    char_limit: int = 100

    def set(self, value: str) -> "TextBuffer":
        value = value[:self.char_limit]
        return replace(self, value=value, cursor=len(value))

    def clear(self) -> "TextBuffer":
        return replace(self, value="", cursor=0)

    def insert(self, text: str) -> "TextBuffer":
        room = self.char_limit - len(self.value)
        if room <= 0:
            return self
        text = text[:room]
        value = self.value[:self.cursor] + text + self.value[self.cursor:]
        return replace(self, value=value, cursor=self.cursor + len(text))

    def backspace(self) -> "TextBuffer":
        if self.cursor == 0:
            return self
        value = self.value[:self.cursor - 1] + self.value[self.cursor:]
        return replace(self, value=value, cursor=self.cursor - 1)

    def delete(self) -> "TextBuffer":
        if self.cursor >= len(self.value):
            return self
        return replace(self, value=self.value[:self.cursor] + self.value[self.cursor + 1:])

    def left(self) -> "TextBuffer":
        return replace(self, cursor=max(0, self.cursor - 1))

    def right(self) -> "TextBuffer":
        return replace(self, cursor=min(len(self.value), self.cursor + 1))

    def home(self) -> "TextBuffer":
        return replace(self, cursor=0)

    def end(self) -> "TextBuffer":
        return replace(self, cursor=len(self.value))

    def edit(self, key: str, character: Optional[str]) -> Optional["TextBuffer"]:
        """
        Apply an editing key.

        Returns the updated buffer, or None when the key is neither an
        editing key nor a printable character.
        """
        if key in _EDIT_KEYS:
            return getattr(self, key)()
        if character and character.isprintable():
            return self.insert(character)
        return None


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionState:
    """
    Immutable snapshot of the interactive session.

    A new value is produced for every event; nothing outside the event
    loop holds a reference that could observe a half-applied change.

    Attributes
    ----------
    current_view : ViewTag
        Screen currently shown.
    password : str
        Last generated password ("" until one is generated).
    settings : GenerationSettings
        Settings used by generate/refresh.
    settings_form : GenerationSettings
        Draft edited by the settings view; committed on enter.
    filter_text : str
        Current list filter (mirrors filter_input.value).
    list_cursor, menu_cursor, settings_cursor : int
        Selected row in the list, welcome menu and class toggles.
    status_message, status_level : str
        Ephemeral message and its severity.
    status_expiry : float
        Clock reading at or after which the message may be cleared.
    loaded_records : tuple of CredentialRecord
        Records read when the list view was last entered.
    length_input, site_input, username_input, filter_input : TextBuffer
        Text inputs of the settings, save and list views.
    save_focus : str
        Save-view field receiving typed characters ('site' or 'username').
    """

    current_view: ViewTag = ViewTag.WELCOME
    password: str = ""
    settings: GenerationSettings = field(default_factory=GenerationSettings)
    settings_form: GenerationSettings = field(default_factory=GenerationSettings)
    filter_text: str = ""
    list_cursor: int = 0
    menu_cursor: int = 0
    settings_cursor: int = 0
    status_message: str = ""
    status_level: str = INFO
    status_expiry: float = 0.0
    loaded_records: Tuple[CredentialRecord, ...] = ()
    length_input: TextBuffer = TextBuffer(char_limit=3)
    site_input: TextBuffer = TextBuffer()
    username_input: TextBuffer = TextBuffer()
    filter_input: TextBuffer = TextBuffer()
    save_focus: str = SITE_FIELD

    @classmethod
    def initial(cls, settings: Optional[GenerationSettings] = None) -> "SessionState":
        """Fresh session on the welcome view, using *settings* (defaults if None)."""
        settings = settings or GenerationSettings()
        return cls(settings=settings, settings_form=settings)

    def filtered_records(self) -> List[CredentialRecord]:
        return filter_records(self.loaded_records, self.filter_text)

    def selected_record(self) -> Optional[CredentialRecord]:
        """Record under the list cursor, or None when the filtered list is empty."""
        records = self.filtered_records()
        if 0 <= self.list_cursor < len(records):
            return records[self.list_cursor]
        return None


# ---------------------------------------------------------------------------
# Events and effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KeyPress:
    """A key from the terminal; *character* is set for printable keys."""

    key: str
    character: Optional[str] = None


@dataclass(frozen=True)
class Paste:
    """Text pasted into the terminal; goes to the focused text input."""

    text: str


@dataclass(frozen=True)
class StatusTimeout:
    """Fired by the timer scheduled with ScheduleStatusClear."""


@dataclass(frozen=True)
class ScheduleStatusClear:
    """Ask for a StatusTimeout event after *delay* seconds."""

    delay: float
    expiry: float


@dataclass(frozen=True)
class PersistSettings:
    """Committed settings should be remembered for the next session."""

    settings: GenerationSettings


@dataclass(frozen=True)
class Quit:
    exit_code: int = 0


Transition = Tuple[SessionState, list]


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class SessionController:
    """
    Interprets events against a SessionState.

    Parameters
    ----------
    store : CredentialStore
        Backing store for saved records.
    clipboard : Clipboard
        Anything with a write_all(text) method.
    generator : callable
        GenerationSettings -> str; raises GenerationError.
    clock : callable
        Returns the current time in seconds (monotonic).
    status_seconds : float
        How long a status message stays visible.
    """

    def __init__(
        self,
        store,
        clipboard,
        generator: Callable[[GenerationSettings], str] = generate,
        clock: Callable[[], float] = time.monotonic,
        status_seconds: float = STATUS_SECONDS,
    ) -> None:
        self.store = store
        self.clipboard = clipboard
        self.generator = generator
        self.clock = clock
        self.status_seconds = status_seconds

        self._view_handlers = {
            ViewTag.WELCOME:      self._on_welcome,
            ViewTag.MAIN:         self._on_main,
            ViewTag.SAVE:         self._on_save,
            ViewTag.LIST:         self._on_list,
            ViewTag.SETTINGS:     self._on_settings,
            ViewTag.CONFIRM_QUIT: self._on_confirm_quit,
        }

    def handle(self, state: SessionState, event) -> Transition:
        """Return the state following *event* and the effects to carry out."""
        if isinstance(event, StatusTimeout):
            return self._expire_status(state), []
        if isinstance(event, Paste):
            return self._paste(state, event.text), []
        if not isinstance(event, KeyPress):
            raise TypeError(f"unsupported event: {event!r}")
        if event.key == "ctrl+c":
            logger.info("Quit requested with ctrl+c")
            return state, [Quit()]
        return self._view_handlers[state.current_view](state, event)

    # ------------------------------------------------------------------
    # Status messages
    # ------------------------------------------------------------------

    def _with_status(self, state: SessionState, message: str, level: str = SUCCESS,
                     effects: Optional[list] = None) -> Transition:
        expiry = self.clock() + self.status_seconds
        state = replace(state, status_message=message, status_level=level, status_expiry=expiry)
        return state, list(effects or []) + [ScheduleStatusClear(self.status_seconds, expiry)]

    def _expire_status(self, state: SessionState) -> SessionState:
        # A timer left over from an earlier message finds a later expiry and does nothing.
        if state.status_message and self.clock() >= state.status_expiry:
            return replace(state, status_message="", status_level=INFO)
        return state

    def _paste(self, state: SessionState, text: str) -> SessionState:
        """Insert pasted *text* into the focused input; views without one ignore it."""
        text = "".join(ch for ch in text if ch.isprintable())
        if not text:
            return state

        view = state.current_view
        if view is ViewTag.SAVE:
            if state.save_focus == SITE_FIELD:
                return replace(state, site_input=state.site_input.insert(text))
            return replace(state, username_input=state.username_input.insert(text))
        if view is ViewTag.SETTINGS:
            return replace(state, length_input=state.length_input.insert(text))
        if view is ViewTag.LIST:
            edited = state.filter_input.insert(text)
            if edited.value == state.filter_text:
                return replace(state, filter_input=edited)
            return replace(state, filter_input=edited, filter_text=edited.value, list_cursor=0)
        return state

    # ------------------------------------------------------------------
    # Welcome
    # ------------------------------------------------------------------

    _WELCOME_SHORTCUTS = {"1": 0, "g": 0, "2": 1, "l": 1, "3": 2, "s": 2, "4": 3, "q": 3}

    def _on_welcome(self, state: SessionState, event: KeyPress) -> Transition:
        key = event.key
        if key == "up":
            return replace(state, menu_cursor=max(0, state.menu_cursor - 1)), []
        if key == "down":
            return replace(state, menu_cursor=min(len(MENU_ITEMS) - 1, state.menu_cursor + 1)), []
        if key == "enter":
            choice = state.menu_cursor
        elif key in self._WELCOME_SHORTCUTS:
            choice = self._WELCOME_SHORTCUTS[key]
        else:
            return state, []

        if choice == 0:
            return self._start_generate(state)
        if choice == 1:
            return self._start_list(state)
        if choice == 2:
            return self._start_settings(state)
        return replace(state, current_view=ViewTag.CONFIRM_QUIT), []

    def _start_generate(self, state: SessionState) -> Transition:
        try:
            password = self.generator(state.settings)
        except GenerationError as exc:
            logger.warning("Password generation failed: %s", exc)
            return self._with_status(replace(state, password=""), f"Error: {exc}", ERROR)
        state = replace(state, password=password, current_view=ViewTag.MAIN)
        return self._with_status(state, f"Generated {len(password)}-character password")

    def _start_list(self, state: SessionState) -> Transition:
        state = replace(
            state,
            current_view=ViewTag.LIST,
            filter_input=state.filter_input.clear(),
            filter_text="",
            list_cursor=0,
        )
        try:
            records = self.store.load_all()
        except StoreError as exc:
            state = replace(state, loaded_records=())
            return self._with_status(state, f"Error loading passwords: {exc}", ERROR)
        return replace(state, loaded_records=tuple(records)), []

    def _start_settings(self, state: SessionState) -> Transition:
        return replace(
            state,
            current_view=ViewTag.SETTINGS,
            settings_form=state.settings,
            length_input=state.length_input.set(str(state.settings.length)),
            settings_cursor=0,
        ), []

    # ------------------------------------------------------------------
    # Main (generated password)
    # ------------------------------------------------------------------

    def _on_main(self, state: SessionState, event: KeyPress) -> Transition:
        key = event.key
        if key == "r":
            return self._refresh(state)
        if key == "s" and state.password:
            return replace(
                state,
                current_view=ViewTag.SAVE,
                site_input=state.site_input.clear(),
                username_input=state.username_input.clear(),
                save_focus=SITE_FIELD,
            ), []
        if key == "c" and state.password:
            return self._copy(state, state.password, "Copied to clipboard")
        if key == "l":
            return self._start_list(state)
        if key == "q":
            return replace(state, current_view=ViewTag.CONFIRM_QUIT), []
        if key == "escape":
            return self._with_status(replace(state, current_view=ViewTag.WELCOME),
                                     "Back to main menu", INFO)
        return state, []

    def _refresh(self, state: SessionState) -> Transition:
        try:
            password = self.generator(state.settings)
        except GenerationError as exc:
            logger.warning("Password refresh failed: %s", exc)
            return self._with_status(state, f"Error: {exc}", ERROR)
        return self._with_status(replace(state, password=password), "Password refreshed")

    def _copy(self, state: SessionState, text: str, done: str) -> Transition:
        try:
            self.clipboard.write_all(text)
        except ClipboardError as exc:
            return self._with_status(state, f"Copy failed: {exc}", ERROR)
        return self._with_status(state, done)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def _on_save(self, state: SessionState, event: KeyPress) -> Transition:
        key = event.key
        if key in ("tab", "shift+tab"):
            focus = USERNAME_FIELD if state.save_focus == SITE_FIELD else SITE_FIELD
            return replace(state, save_focus=focus), []
        if key == "enter":
            return self._submit_save(state)
        if key == "escape":
            state = replace(
                state,
                current_view=ViewTag.MAIN,
                site_input=state.site_input.clear(),
                username_input=state.username_input.clear(),
                save_focus=SITE_FIELD,
            )
            return self._with_status(state, "Save cancelled", INFO)

        if state.save_focus == SITE_FIELD:
            edited = state.site_input.edit(key, event.character)
            return (replace(state, site_input=edited) if edited else state), []
        edited = state.username_input.edit(key, event.character)
        return (replace(state, username_input=edited) if edited else state), []

    def _submit_save(self, state: SessionState) -> Transition:
        try:
            site = require_field(state.site_input.value, SITE_FIELD, "Site name")
        except EmptyField as exc:
            return self._with_status(replace(state, save_focus=SITE_FIELD), str(exc), ERROR)
        username = state.username_input.value.strip()

        try:
            self.store.append(CredentialRecord(site, username, state.password))
        except StoreError as exc:
            return self._with_status(state, f"Save failed: {exc}", ERROR)

        state = replace(
            state,
            current_view=ViewTag.MAIN,
            site_input=state.site_input.clear(),
            username_input=state.username_input.clear(),
            save_focus=SITE_FIELD,
        )
        name = self.store.name
        try:
            self.clipboard.write_all(state.password)
        except ClipboardError:
            # The record is on disk; only the copy is missing.
            return self._with_status(state, f"Saved to {name} (clipboard copy failed)", WARNING)
        return self._with_status(state, f"Saved to {name} & copied to clipboard")

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    def _on_list(self, state: SessionState, event: KeyPress) -> Transition:
        key = event.key
        if key == "up":
            return replace(state, list_cursor=max(0, state.list_cursor - 1)), []
        if key == "down":
            last = len(state.filtered_records()) - 1
            return replace(state, list_cursor=max(0, min(last, state.list_cursor + 1))), []
        if key == "enter":
            record = state.selected_record()
            if record is None:
                return state, []
            return self._copy(state, record.secret, f"Password for {record.site} copied to clipboard")
        if key == "escape":
            state = replace(
                state,
                current_view=ViewTag.WELCOME,
                filter_input=state.filter_input.clear(),
                filter_text="",
                list_cursor=0,
            )
            return self._with_status(state, "Back to main menu", INFO)

        edited = state.filter_input.edit(key, event.character)
        if edited is None:
            return state, []
        if edited.value == state.filter_text:
            return replace(state, filter_input=edited), []
        return replace(state, filter_input=edited, filter_text=edited.value, list_cursor=0), []

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _on_settings(self, state: SessionState, event: KeyPress) -> Transition:
        key = event.key
        if key == "up":
            return replace(state, settings_cursor=max(0, state.settings_cursor - 1)), []
        if key == "down":
            return replace(state, settings_cursor=min(3, state.settings_cursor + 1)), []
        if key == "space":
            return replace(state, settings_form=state.settings_form.toggled(state.settings_cursor)), []
        if key == "enter":
            return self._submit_settings(state)
        if key == "escape":
            state = replace(state, current_view=ViewTag.WELCOME, settings_form=state.settings)
            return self._with_status(state, "Settings discarded", INFO)

        edited = state.length_input.edit(key, event.character)
        return (replace(state, length_input=edited) if edited else state), []

    def _submit_settings(self, state: SessionState) -> Transition:
        try:
            length = parse_length(state.length_input.value)
            message, level = "Settings saved", SUCCESS
        except InputValidationError as exc:
            length = DEFAULT_LENGTH
            message, level = f"{exc}. Using default: {DEFAULT_LENGTH}", WARNING

        settings = state.settings_form.with_length(length)
        if not settings.alphabet():
            if level == WARNING:
                message = f"{message}; no character classes are enabled"
            else:
                message, level = "Settings saved, but no character classes are enabled", WARNING

        logger.info("Generation settings committed: length=%d classes=%s",
                    settings.length, settings.flags())
        state = replace(
            state,
            current_view=ViewTag.WELCOME,
            settings=settings,
            settings_form=settings,
            length_input=state.length_input.set(str(length)),
        )
        return self._with_status(state, message, level, effects=[PersistSettings(settings)])

    # ------------------------------------------------------------------
    # Confirm quit
    # ------------------------------------------------------------------

    def _on_confirm_quit(self, state: SessionState, event: KeyPress) -> Transition:
        if event.key in ("y", "enter"):
            logger.info("Quit confirmed")
            return state, [Quit()]
        if event.key in ("n", "escape"):
            return replace(state, current_view=ViewTag.WELCOME), []
        return state, []
