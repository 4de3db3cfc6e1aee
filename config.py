"""
config.py – Application configuration and constants.

Two things live here:
  - Fixed values used across the program (character sets, length limits,
    how long status messages last, the credential file name).
  - AppConfig, which owns the per-user data directory, the rotating log
    file and config.json (store path, remembered generation settings,
    status lifetime).

No other application module is imported at module level (generator.py
is imported lazily by generation_settings()), so config.py sits at the
bottom of the dependency graph and can be safely imported by any other
module.
"""

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import appdirs

# ---------------------------------------------------------------------------
# Fixed values.
# ---------------------------------------------------------------------------

APP_NAME = "SecurePasswordManager"

# Human-readable application version.
APP_VERSION = "1.0.0"

# Character classes, in the canonical order used to build the alphabet.
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS    = "0123456789"
SYMBOLS   = "!@#$%^&*()_+-=[]{}|;:,.<>?"

# Labels shown next to each class toggle in the settings view.
CLASS_LABELS = ("Lowercase (a-z)", "Uppercase (A-Z)", "Numbers (0-9)", "Symbols (!@#...)")

# Bounds for the length of a generated password.
MIN_LENGTH     = 4
MAX_LENGTH     = 128
DEFAULT_LENGTH = 16

# Seconds a status message stays on screen.
STATUS_SECONDS = 3.0

# Default name of the plaintext credential file.
STORE_FILENAME = "passwords.csv"

# ---------------------------------------------------------------------------
# Keys of config.json and the values used when a key is missing.
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: dict = {
    # Credential file; relative paths resolve against the working directory.
    "store_path": STORE_FILENAME,
    # Generation settings restored at start-up.
    "password_length": DEFAULT_LENGTH,
    "include_lower":   True,
    "include_upper":   True,
    "include_numbers": True,
    "include_symbols": True,
    # Lifetime of status messages, in seconds.
    "status_seconds": STATUS_SECONDS,
}


class AppConfig:
    """
    Per-user settings, file locations and the application log.

    Construction goes through these steps in order:
      1. Pick the data directory (appdirs, unless one is passed in) and
         create it.
      2. Place config.json and app.log inside it.
      3. Attach the rotating log handler.
      4. Read config.json, falling back to DEFAULT_CONFIG.

    Attributes
    ----------
    user_data_dir : str
        Absolute path of the directory that stores config and log files.
    config_path : str
        JSON configuration file.
    log_path : str
        Rotating application log.
    data : dict
        Configuration values in memory; save() writes them back.
    logger : logging.Logger
        The "SecurePasswordManager" logger every module writes to.
    """

    def __init__(self, user_data_dir: Optional[str] = None) -> None:
        # Data directory first; every other path hangs off it.
        self.user_data_dir: str = self._get_user_data_dir(user_data_dir)

        self.config_path: str = os.path.join(self.user_data_dir, "config.json")
        self.log_path:    str = os.path.join(self.user_data_dir, "app.log")

        self.logger: logging.Logger = self._setup_logger()

        self.data: dict = self._load()

        self.logger.info("Configuration loaded from %s", self.user_data_dir)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _get_user_data_dir(path: Optional[str] = None) -> str:
        """
        Return (and create if necessary) the user-data directory.

        Uses *path* when given, otherwise the directory appdirs reports
        for APP_NAME.
        """
        if path is None:
            path = appdirs.user_data_dir(APP_NAME)
        os.makedirs(path, exist_ok=True)
        return path

    def _setup_logger(self) -> logging.Logger:
        """
        Attach a RotatingFileHandler for app.log to the application logger.

        The log rotates at 2 MB and keeps up to 3 backup files.  A handler
        already pointing at this log file is reused instead of duplicated.
        """
        logger = logging.getLogger(APP_NAME)
        logger.setLevel(logging.DEBUG)

        target = os.path.abspath(self.log_path)
        for existing in logger.handlers:
            if getattr(existing, "baseFilename", None) == target:
                return logger

        handler = RotatingFileHandler(
            self.log_path,
            maxBytes=2_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(module)s: %(message)s")
        )
        logger.addHandler(handler)
        return logger

    def _load(self) -> dict:
        """
        Return the contents of config.json as a dict.

        Keys absent from the file take their DEFAULT_CONFIG value, so a
        file written by an older version still yields every key.
        An unreadable file is logged and replaced by the defaults.
        """
        try:
            if os.path.exists(self.config_path):
                with open(self.config_path, "r", encoding="utf-8") as fh:
                    cfg = json.load(fh)
                if not isinstance(cfg, dict):
                    raise ValueError("config root must be a JSON object")
                for key, value in DEFAULT_CONFIG.items():
                    cfg.setdefault(key, value)
                return cfg
        except (OSError, ValueError):
            self.logger.exception("Could not read %s; falling back to defaults", self.config_path)

        return dict(DEFAULT_CONFIG)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write self.data to config.json."""
        try:
            with open(self.config_path, "w", encoding="utf-8") as fh:
                json.dump(self.data, fh, indent=2)
            self.logger.info("Configuration written to %s", self.config_path)
        except OSError:
            self.logger.exception("Could not write %s", self.config_path)

    def get(self, key: str, default=None):
        """Value stored under *key*, or *default*."""
        return self.data.get(key, default)

    def set(self, key: str, value) -> None:
        """
        Change *key* in memory only.

        Nothing reaches disk until save() is called.
        """
        self.data[key] = value

    def store_path(self) -> str:
        """Absolute path of the credential CSV file."""
        return os.path.abspath(os.path.expanduser(str(self.get("store_path", STORE_FILENAME))))

    def status_seconds(self) -> float:
        """Status message lifetime; non-numeric or non-positive values fall back to 3 s."""
        try:
            value = float(self.get("status_seconds", STATUS_SECONDS))
        except (TypeError, ValueError):
            return STATUS_SECONDS
        return value if value > 0 else STATUS_SECONDS

    def generation_settings(self):
        """
        Build the start-up GenerationSettings from the stored values.

        A stored length outside [MIN_LENGTH, MAX_LENGTH] (or not an
        integer) is replaced by DEFAULT_LENGTH.
        """
        from generator import GenerationSettings

        try:
            length = int(self.get("password_length", DEFAULT_LENGTH))
        except (TypeError, ValueError):
            length = DEFAULT_LENGTH
        if not MIN_LENGTH <= length <= MAX_LENGTH:
            self.logger.warning("Stored password length %r out of range; using %d",
                                length, DEFAULT_LENGTH)
            length = DEFAULT_LENGTH

        return GenerationSettings(
            length=length,
            include_lower=bool(self.get("include_lower", True)),
            include_upper=bool(self.get("include_upper", True)),
            include_numbers=bool(self.get("include_numbers", True)),
            include_symbols=bool(self.get("include_symbols", True)),
        )

    def update_generation_settings(self, settings) -> None:
        """Store *settings* as the defaults for the next session and save."""
        self.set("password_length", settings.length)
        self.set("include_lower",   settings.include_lower)
        self.set("include_upper",   settings.include_upper)
        self.set("include_numbers", settings.include_numbers)
        self.set("include_symbols", settings.include_symbols)
        self.save()
