import argparse
import os

from piranha._errors import DecodeError
from piranha._errors import PiranhaCommandError
from piranha.commands.common import add_trace_arguments
from piranha.commands.common import read_trace
from piranha.decoder import TraceDecoder
from piranha.decoder import describe_address


def dump_trace(decoder: TraceDecoder) -> None:
    for region in decoder.load_memory_map().values():
        print(
            f"REGION name={region.name!r} start={region.start:#x} "
            f"end={region.end:#x} file_offset={region.file_offset:#x}"
        )
    for symbol in decoder.load_symbols():
        print(
            f"SYMBOL module={symbol.module!r} name={symbol.name!r} "
            f"address={symbol.address:#x}"
        )
    for tick, samples in enumerate(decoder.iter_samples()):
        for sample in samples:
            frames = ", ".join(
                describe_address(decoder, address) for address in sample.raw_addresses
            )
            state = "running" if sample.running else "sleeping"
            print(f"SAMPLE tick={tick} tid={sample.thread_id} {state} [{frames}]")


class ParseCommand:
    """Debug a trace file by parsing and printing each record in it"""

    def prepare_parser(self, parser: argparse.ArgumentParser) -> None:
        add_trace_arguments(parser)

    def run(self, args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
        if os.isatty(1):
            raise PiranhaCommandError(
                "You must redirect stdout to a file or shell pipeline.",
                exit_code=1,
            )

        data = read_trace(args.trace, args.base64)
        try:
            dump_trace(TraceDecoder(data))
        except DecodeError as e:
            raise PiranhaCommandError(
                f"Failed to parse records in {args.trace}\nReason: {e}",
                exit_code=1,
            )
