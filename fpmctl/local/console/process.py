import logging
from typing import List
from fpmctl.local.supervisor import FpmError
from fpmctl.local.console.handler import (
    display_status, handle_config_command, print_help, run_fpm, start_fpm, stop_fpm,
)

log = logging.getLogger(__name__)


def execute_command(command: str, args: List[str]) -> int:
    """
    Executes a single command from the user.

    :param command: The main command string (e.g., 'start', 'config').
    :param args: A list of arguments for the command.
    :return int: The exit status for the process.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": start_fpm,
        "run": run_fpm,
        "stop": stop_fpm,
        "status": display_status,
        "config": lambda: handle_config_command(args),
        "help": print_help,
    }

    if command not in command_map:
        log.info(f"Unknown command: '{command}'.")
        print_help()
        return 1

    try:
        return command_map[command]()
    except FpmError as e:
        log.error(f"Command '{command}' failed: {e}")
        return 1
    except Exception as e:
        log.critical(f"An unexpected error occurred running '{command}': {e}", exc_info=True)
        return 1
