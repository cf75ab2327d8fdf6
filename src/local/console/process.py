import logging
from typing import List

from src.local.supervisor import VaultService
from src.local.console.handler import (
    display_status, display_vaults, handle_add_command, handle_config_command, handle_data_dir_command,
    handle_lock_command, handle_logs_command, handle_mount_point_command, handle_remove_command,
    handle_rename_command, handle_unlock_command, print_help, toggle_verbose_logging,
)

log = logging.getLogger(__name__)


def execute_command(service: VaultService, command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param service: The vault service the commands act on.
    :param command: The main command string (e.g., 'unlock', 'config').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "list": lambda: display_vaults(service),
        "status": lambda: display_status(service),
        "add": lambda: handle_add_command(service, args),
        "rename": lambda: handle_rename_command(service, args),
        "remove": lambda: handle_remove_command(service, args),
        "unlock": lambda: handle_unlock_command(service, args),
        "lock": lambda: handle_lock_command(service, args),
        "mount-point": lambda: handle_mount_point_command(service, args),
        "data-dir": lambda: handle_data_dir_command(service, args),
        "config": lambda: handle_config_command(args),
        "logs": lambda: handle_logs_command(service),
        "verbose": toggle_verbose_logging,
        "help": print_help,
        "exit": lambda: True,
    }

    if command not in command_map:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False

    return command_map[command]() is True
