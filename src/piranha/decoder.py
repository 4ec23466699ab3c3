import logging
from dataclasses import dataclass
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional

from piranha._errors import MissingModuleName
from piranha._errors import StructureError
from piranha._errors import ThreadNotFound
from piranha._errors import UnexpectedTag
from piranha._errors import UnknownModule
from piranha.calltree import CallTreeAggregator
from piranha.calltree import CallTreeNode
from piranha.calltree import DecodeResult
from piranha.calltree import Orientation
from piranha.reader import ByteString
from piranha.reader import CursorReader
from piranha.symbols import MemoryRegion
from piranha.symbols import Symbol
from piranha.symbols import SymbolResolver
from piranha.symbols import build_symbol_table
from piranha.symbols import format_address
from piranha.tags import Tag
from piranha.tags import describe_tag

logger = logging.getLogger(__name__)


@dataclass
class Sample:
    """One thread's stack at one tick, innermost frame first."""

    thread_id: int
    running: bool
    raw_addresses: List[int]


class TraceDecoder:
    """Decode the sections of one trace.

    The memory map has to be loaded before the symbols, and the symbols
    before the samples. :meth:`decode` runs the three passes in that order.
    """

    def __init__(self, data: ByteString) -> None:
        self._reader = CursorReader(data)
        self.regions: Dict[str, MemoryRegion] = {}
        self.symbols: List[Symbol] = []

    def _unexpected(self, container: Tag) -> UnexpectedTag:
        reader = self._reader
        return UnexpectedTag(
            f"{describe_tag(reader.tag)} element inside {container.name}",
            offset=reader.header_offset,
            tag=reader.tag,
        )

    def load_memory_map(self) -> Dict[str, MemoryRegion]:
        reader = self._reader
        reader.seek_top_level(Tag.MEMORY_MAP)

        regions: Dict[str, MemoryRegion] = {}
        for tag in reader.for_each_child():
            if tag != Tag.REGION:
                raise self._unexpected(Tag.MEMORY_MAP)
            region = MemoryRegion(
                name=reader.read_cstring(12),
                start=reader.read_uint32(0),
                end=reader.read_uint32(4),
                file_offset=reader.read_uint32(8),
            )
            if region.name in regions:
                logger.warning("Duplicate memory region for %r", region.name)
            regions[region.name] = region
            logger.debug(
                "map: %s: %x-%x @ %x",
                region.name,
                region.start,
                region.end,
                region.file_offset,
            )

        self.regions = regions
        return regions

    def _load_module(self) -> List[Symbol]:
        reader = self._reader
        module_offset = reader.header_offset
        module_name: Optional[str] = None
        raw_symbols = []
        for tag in reader.for_each_child():
            if tag == Tag.MODULE_NAME:
                module_name = reader.read_cstring(0)
            elif tag == Tag.SYMBOL:
                raw_symbols.append((reader.read_uint32(0), reader.read_cstring(4)))
            else:
                raise self._unexpected(Tag.MODULE)

        if module_name is None:
            raise MissingModuleName(
                "module without a name", offset=module_offset, tag=Tag.MODULE
            )
        region = self.regions.get(module_name)
        if region is None:
            raise UnknownModule(
                f"no memory region for module {module_name!r}",
                offset=module_offset,
                tag=Tag.MODULE,
            )
        return [
            Symbol.from_raw_offset(region, name, raw_offset)
            for raw_offset, name in raw_symbols
        ]

    def load_symbols(self) -> List[Symbol]:
        reader = self._reader
        reader.seek_top_level(Tag.SYMBOLS)

        symbols: List[Symbol] = []
        for tag in reader.for_each_child():
            if tag != Tag.MODULE:
                raise self._unexpected(Tag.SYMBOLS)
            symbols.extend(self._load_module())

        self.symbols = build_symbol_table(symbols)
        if self.symbols:
            first, last = self.symbols[0], self.symbols[-1]
            logger.debug(
                "sym: %d symbols from %s at %x to %s at %x",
                len(self.symbols),
                first.name,
                first.address,
                last.name,
                last.address,
            )
        return self.symbols

    def _read_thread_sample(self) -> Sample:
        reader = self._reader
        sample_offset = reader.header_offset
        thread_id: Optional[int] = None
        running = False
        addresses: List[int] = []
        for tag in reader.for_each_child():
            if tag == Tag.THREAD_PID:
                thread_id = reader.read_uint32(0)
            elif tag == Tag.THREAD_STATUS:
                running = reader.read_cstring(0)[:1] != "S"
            elif tag == Tag.STACK:
                addresses = list(reader.iter_uint32())
            else:
                raise self._unexpected(Tag.THREAD_SAMPLE)

        if thread_id is None:
            raise StructureError(
                "thread sample without a thread id",
                offset=sample_offset,
                tag=Tag.THREAD_SAMPLE,
            )
        return Sample(thread_id=thread_id, running=running, raw_addresses=addresses)

    def iter_samples(self) -> Iterator[List[Sample]]:
        """Yield the thread samples captured at each tick, one list per tick."""
        reader = self._reader
        reader.seek_top_level(Tag.SAMPLES)
        for tag in reader.for_each_child():
            if tag != Tag.SAMPLE:
                raise self._unexpected(Tag.SAMPLES)
            tick = []
            for child_tag in reader.for_each_child():
                if child_tag != Tag.THREAD_SAMPLE:
                    raise self._unexpected(Tag.SAMPLE)
                tick.append(self._read_thread_sample())
            yield tick

    def load_samples(self, resolver: Optional[SymbolResolver] = None) -> DecodeResult:
        if resolver is None:
            resolver = SymbolResolver(self.symbols, self.regions)

        aggregator = CallTreeAggregator()
        total_samples = 0
        for tick in self.iter_samples():
            for sample in tick:
                stack = [resolver.resolve(address) for address in sample.raw_addresses]
                aggregator.add_stack(sample.thread_id, stack, sample.running)
            total_samples += 1

        logger.info("Read %d samples", total_samples)
        return aggregator.result(total_samples)

    def decode(self) -> DecodeResult:
        self.load_memory_map()
        self.load_symbols()
        return self.load_samples()


def decode(data: ByteString) -> DecodeResult:
    """Decode a complete trace into per-thread call trees.

    Raises:
        DecodeError: The trace is malformed. Nothing is returned for a
            partially decoded trace.
    """
    return TraceDecoder(data).decode()


def list_thread_ids(result: DecodeResult) -> List[int]:
    return sorted(result.threads)


def get_tree(
    result: DecodeResult, thread_id: int, orientation: Orientation
) -> CallTreeNode:
    try:
        trees = result.threads[thread_id]
    except KeyError:
        raise ThreadNotFound(f"No samples for thread {thread_id}") from None
    return trees.tree(orientation)


def describe_address(decoder: TraceDecoder, address: int) -> str:
    """Render an address with the module that contains it, for debug output."""
    for region in decoder.regions.values():
        if region.start <= address < region.end:
            return f"{region.name}+{address - region.start + region.file_offset:x}"
    return format_address(address)
