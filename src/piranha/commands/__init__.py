import argparse
import sys
import textwrap
from typing import List
from typing import Optional

from piranha._errors import PiranhaCommandError
from piranha._errors import PiranhaError
from piranha._logging import VERBOSITY_LEVELS
from piranha._logging import set_log_level
from piranha._logging import verbosity_to_level
from piranha._version import __version__

from .html import HtmlCommand
from .parse import ParseCommand
from .protocol import Command
from .stats import StatsCommand
from .tree import TreeCommand

_COMMANDS: List[Command] = [
    TreeCommand(),
    StatsCommand(),
    HtmlCommand(),
    ParseCommand(),
]

_EPILOG = textwrap.dedent(
    """\
    Traces are written by the piranha sampling profiler. Use --base64 for
    traces that were saved as base64 text or as a data: URL.
    """
)

_DESCRIPTION = textwrap.dedent(
    """\
    Call tree analyzer for piranha sampling profiles

        Examples:

        $ python3 -m piranha tree profile.ebml
        $ python3 -m piranha tree --thread 1234 --orientation top-down profile.ebml
        $ python3 -m piranha stats --json profile.ebml
        $ python3 -m piranha html -o report.html profile.ebml
    """
)


def command_name(command: Command) -> str:
    """``TreeCommand`` is registered as the ``tree`` subcommand."""
    class_name = type(command).__name__
    assert class_name.endswith("Command")
    return class_name[: -len("Command")].lower()


def get_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=_DESCRIPTION,
        prog="piranha",
        formatter_class=argparse.RawTextHelpFormatter,
        epilog=_EPILOG,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help=(
            "Log decoding progress to stderr. Repeat for more detail, up to "
            f"{len(VERBOSITY_LEVELS) - 1} times"
        ),
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=__version__,
        help="Displays the current version of piranha",
    )

    subparsers = parser.add_subparsers(
        help="Mode of operation",
        dest="command",
        required=True,
    )
    for command in _COMMANDS:
        command_parser = subparsers.add_parser(
            command_name(command),
            help=command.__doc__,
            description=command.__doc__,
            epilog=_EPILOG,
        )
        command_parser.set_defaults(entrypoint=command.run)
        command.prepare_parser(command_parser)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit status."""
    if args is None:
        args = sys.argv[1:]

    parser = get_argument_parser()
    arg_values = parser.parse_args(args=args)
    set_log_level(verbosity_to_level(arg_values.verbose))

    try:
        arg_values.entrypoint(arg_values, parser)
    except PiranhaError as e:
        print(e, file=sys.stderr)
        return e.exit_code if isinstance(e, PiranhaCommandError) else 1
    return 0
