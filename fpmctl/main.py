import sys
import logging
from typing import List, Optional

from fpmctl.log.setup import setup_logging
from fpmctl.local import effective_settings
import fpmctl.local.console as console

log = logging.getLogger("console")


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the console application."""
    args = list(sys.argv[1:] if argv is None else argv)

    verbose = effective_settings.VERBOSE_LOGGING
    if "--verbose" in args:
        verbose = True
        args.remove("--verbose")

    setup_logging(logging.DEBUG if verbose else logging.INFO, effective_settings.LOG_FILE or None)

    if not args:
        console.print_help()
        return 0

    command, command_args = args[0].lower(), args[1:]
    return console.execute_command(command, command_args)


if __name__ == "__main__":
    sys.exit(main())
