"""
main.py – Application entry point.

Only wiring happens here; each concern has its own module:

  config.py            – AppConfig          : constants, file paths, config I/O, logging
  generator.py         – generate()         : random passwords from GenerationSettings
  storage.py           – CredentialStore    : plaintext CSV append / load, filtering
  clipboard_access.py  – Clipboard          : clipboard writes through pyperclip
  session.py           – SessionController  : session state and view state machine
  ui.py                – PasswordManagerApp : textual terminal UI, effect execution

To run the application:
    python main.py

or, once installed:
    secure-password-manager
"""

import sys

from clipboard_access import Clipboard
from config import AppConfig
from session import SessionController, SessionState
from storage import CredentialStore
from ui import PasswordManagerApp, Theme


def main() -> int:
    """Build every subsystem, run the terminal UI and return the exit code."""
    try:
        config = AppConfig()
    except OSError as exc:
        print(f"Cannot initialise the application data directory: {exc}", file=sys.stderr)
        return 1

    store = CredentialStore(config.store_path())
    controller = SessionController(store, Clipboard(), status_seconds=config.status_seconds())
    app = PasswordManagerApp(
        controller,
        Theme.default(),
        SessionState.initial(config.generation_settings()),
        on_settings_committed=config.update_generation_settings,
    )
    config.logger.info("Starting; credential file: %s", store.path)

    try:
        app.run()
    except Exception:
        config.logger.exception("Terminal UI failed")
        print("The terminal UI could not be started; see the log at " + config.log_path,
              file=sys.stderr)
        return 1

    return app.return_code or 0


if __name__ == "__main__":
    sys.exit(main())
