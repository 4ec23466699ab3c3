import argparse

from piranha._errors import PiranhaCommandError
from piranha.calltree import Orientation
from piranha.commands.common import add_trace_arguments
from piranha.commands.common import decode_trace
from piranha.reporters.tree import TreeReporter


def non_negative_float(value: str) -> float:
    try:
        fvalue = float(value)
        if fvalue < 0:
            raise ValueError
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"{value} is an invalid non-negative number"
        )
    return fvalue


class TreeCommand:
    """Show the call trees of a trace in the terminal"""

    def prepare_parser(self, parser: argparse.ArgumentParser) -> None:
        add_trace_arguments(parser)
        parser.add_argument(
            "-t",
            "--thread",
            help="Only show this thread (defaults to all threads)",
            type=int,
            action="append",
            dest="threads",
            default=None,
        )
        parser.add_argument(
            "--orientation",
            help="Which tree to show (defaults to both)",
            choices=[orientation.value for orientation in Orientation],
            default=None,
        )
        parser.add_argument(
            "-d",
            "--max-depth",
            help="Only show this many levels of each tree",
            type=int,
            default=None,
        )
        parser.add_argument(
            "--threshold",
            metavar="PERCENT",
            help="Hide nodes with less than this percentage of samples (defaults to 0)",
            type=non_negative_float,
            default=0.0,
        )

    def run(self, args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
        result = decode_trace(args.trace, args.base64)
        if args.threads:
            missing = [tid for tid in args.threads if tid not in result.threads]
            if missing:
                raise PiranhaCommandError(
                    f"No samples for thread {missing[0]} in {args.trace}",
                    exit_code=1,
                )

        orientations = (
            tuple(Orientation)
            if args.orientation is None
            else (Orientation(args.orientation),)
        )
        reporter = TreeReporter.from_result(
            result, max_depth=args.max_depth, threshold=args.threshold
        )
        reporter.render(thread_ids=args.threads, orientations=orientations)
