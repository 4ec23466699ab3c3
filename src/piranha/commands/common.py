import argparse
import base64
import binascii
import os
import pathlib
from pathlib import Path
from typing import Callable
from typing import Optional
from typing import Tuple

from piranha._errors import DecodeError
from piranha._errors import PiranhaCommandError
from piranha.calltree import DecodeResult
from piranha.decoder import decode
from piranha.reporters import BaseReporter

ReporterFactory = Callable[[DecodeResult], BaseReporter]


def add_trace_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("trace", help="Trace file written by the profiler")
    parser.add_argument(
        "--base64",
        help="The trace file is base64 text, optionally a data: URL",
        action="store_true",
        default=False,
    )


def decode_base64_trace(text: bytes) -> bytes:
    """Decode a base64 trace, dropping any ``data:...;base64,`` prefix."""
    if text.startswith(b"data:"):
        _, _, text = text.partition(b",")
    try:
        return base64.b64decode(b"".join(text.split()), validate=True)
    except binascii.Error as e:
        raise PiranhaCommandError(
            f"Trace is not valid base64\nReason: {e}", exit_code=1
        )


def read_trace(trace: str, encoded: bool = False) -> bytes:
    trace_path = Path(trace)
    if not trace_path.exists() or not trace_path.is_file():
        raise PiranhaCommandError(f"No such file: {trace}", exit_code=1)
    try:
        data = trace_path.read_bytes()
    except OSError as e:
        raise PiranhaCommandError(
            f"Failed to read {trace_path}\nReason: {e}", exit_code=1
        )
    if encoded:
        data = decode_base64_trace(data)
    return data


def decode_trace(trace: str, encoded: bool = False) -> DecodeResult:
    data = read_trace(trace, encoded)
    try:
        return decode(data)
    except DecodeError as e:
        raise PiranhaCommandError(
            f"Failed to decode {trace}\nReason: {e}", exit_code=1
        )


class ReportCommand:
    def __init__(
        self,
        reporter_factory: ReporterFactory,
        reporter_name: str,
        suffix: str = ".html",
    ) -> None:
        self.reporter_factory = reporter_factory
        self.reporter_name = reporter_name
        self.suffix = suffix
        self.output_file: Optional[Path] = None

    def determine_output_filename(self, trace_file: pathlib.Path) -> pathlib.Path:
        output_name = trace_file.with_suffix(self.suffix).name
        if output_name.startswith("piranha-"):
            output_name = output_name[len("piranha-") :]

        return trace_file.parent / f"piranha-{self.reporter_name}-{output_name}"

    def validate_filenames(
        self, output: Optional[str], trace: str, overwrite: bool = False
    ) -> Tuple[Path, Path]:
        """Ensure that the filenames provided by the user are usable."""
        trace_path = Path(trace)
        if not trace_path.exists() or not trace_path.is_file():
            raise PiranhaCommandError(f"No such file: {trace}", exit_code=1)

        output_file = Path(
            output
            if output is not None
            else self.determine_output_filename(trace_path)
        )
        if not overwrite and output_file.exists():
            raise PiranhaCommandError(
                f"File already exists, will not overwrite: {output_file}",
                exit_code=1,
            )
        return trace_path, output_file

    def write_report(self, trace_path: Path, output_file: Path, encoded: bool) -> None:
        result = decode_trace(os.fspath(trace_path), encoded)
        reporter = self.reporter_factory(result)
        with open(os.fspath(output_file.expanduser()), "w") as f:
            reporter.render(outfile=f, trace_name=trace_path.name)

    def prepare_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-o",
            "--output",
            help="Output file name",
            default=None,
        )
        parser.add_argument(
            "-f",
            "--force",
            help="If the output file already exists, overwrite it",
            action="store_true",
            default=False,
        )
        add_trace_arguments(parser)

    def run(self, args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
        trace_path, output_file = self.validate_filenames(
            output=args.output,
            trace=args.trace,
            overwrite=args.force,
        )
        self.output_file = output_file
        self.write_report(trace_path, output_file, args.base64)

        print(f"Wrote {output_file}")
