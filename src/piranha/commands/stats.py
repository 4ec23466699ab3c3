import argparse
from pathlib import Path
from typing import Optional

from piranha._errors import PiranhaCommandError
from piranha.commands.common import add_trace_arguments
from piranha.commands.common import decode_trace
from piranha.reporters.stats import StatsReporter


class StatsCommand:
    """Show high level statistics of a trace in the terminal"""

    def prepare_parser(self, parser: argparse.ArgumentParser) -> None:
        add_trace_arguments(parser)

        def valid_positive_int(value: str) -> int:
            try:
                ivalue = int(value)
                if ivalue <= 0:
                    raise ValueError
            except ValueError:
                raise argparse.ArgumentTypeError(
                    f"{value} is an invalid positive int value"
                )

            return ivalue

        parser.add_argument(
            "-n",
            "--num-largest",
            help="Displays the top 'n' most sampled functions. Default is 5",
            type=valid_positive_int,
            default=5,
        )
        parser.add_argument(
            "--json",
            help="Exports stats to a JSON file",
            action="store_true",
            default=False,
        )
        parser.add_argument(
            "-o",
            "--output",
            help="Output file name for JSON output",
            default=None,
        )
        parser.add_argument(
            "-f",
            "--force",
            help="If the JSON output file already exists, overwrite it",
            action="store_true",
            default=False,
        )

    def run(self, args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
        trace_path = Path(args.trace)
        json_output_file: Optional[Path] = None
        if args.json:
            if args.output:
                json_output_file = Path(args.output)
            else:
                filename = str(trace_path.with_suffix(".json").name)
                if filename.startswith("piranha-"):
                    filename = filename[len("piranha-") :]
                json_output_file = trace_path.with_name("piranha-stats-" + filename)

            if not args.force and json_output_file.exists():
                raise PiranhaCommandError(
                    f"File already exists, will not overwrite: {json_output_file}",
                    exit_code=1,
                )

        result = decode_trace(args.trace, args.base64)
        reporter = StatsReporter(result, args.num_largest)
        reporter.render(json_output_file=json_output_file)
        if json_output_file is not None:
            print(f"Wrote {json_output_file}")
