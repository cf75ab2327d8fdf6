import sys
import logging
import threading

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("console")

import setproctitle

import src.local.console as console
from src.local import effective_settings as config
from src.local.errors import ConfigurationError
from src.log.setup import setup_logging
from src.local.supervisor import VaultService

# --- Global State ---
CONSOLE_LOCK = threading.Lock()


def _build_service() -> VaultService:
    """
    Creates the vault service and routes logging to the log database in its data directory.

    :raises ConfigurationError: If the base data directory cannot be resolved.
    """
    service = VaultService(config)
    setup_logging(logging.INFO, service.logs_dir / config.LOG_DB_FILENAME)
    return service


def main() -> int:
    """The main entry point for the console application."""
    setproctitle.setproctitle("vaultd - Console")

    # The very first thing we do is set up logging for the console.
    setup_logging(logging.INFO)

    try:
        service = _build_service()
    except ConfigurationError as e:
        log.critical(f"Cannot start: {e}")
        return 1

    try:
        # Non-interactive mode for one-off commands
        if len(sys.argv) > 1:
            command, args = sys.argv[1].lower(), sys.argv[2:]
            if "--verbose" in args:
                console.toggle_verbose_logging()
                args.remove("--verbose")

            console.execute_command(service, command, args)
            return 0

        service.start_monitor(config.SUPERVISOR_SLEEP_INTERVAL)

        # Interactive mode
        print("--- Vault Management Console ---")
        print("Type 'help' for a list of commands.")
        while True:
            try:
                # The input prompt must be outside the lock to not block background threads
                command_line_str = input("> ")
                with CONSOLE_LOCK:
                    if not command_line_str.strip():
                        continue
                    command_line = command_line_str.strip().split()

                    command, args = command_line[0].lower(), command_line[1:]

                    log.debug(f"Received command: {command}, args: {args}")

                    if console.execute_command(service, command, args):
                        break

            except (KeyboardInterrupt, EOFError):
                with CONSOLE_LOCK:
                    log.warning("\nExiting console due to KeyboardInterrupt.")
                    break
            except Exception as e:
                with CONSOLE_LOCK:
                    log.error(f"An unexpected error occurred in the console: {e}", exc_info=True)
    finally:
        service.shutdown()
    return 0


if __name__ == "__main__":
    exit_code = main()
    print("Exiting console application. See you next time!")
    sys.exit(exit_code)
