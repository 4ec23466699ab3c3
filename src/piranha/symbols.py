"""Map raw instruction addresses to symbol names."""
import bisect
import functools
from dataclasses import dataclass
from typing import Callable
from typing import Iterable
from typing import List
from typing import Mapping

# Anything further than this past the closest preceding symbol is assumed to
# belong to a function we have no symbol for.
MAX_FUNCTION_SIZE = 1024

ADDRESS_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class MemoryRegion:
    """A module mapped into the profiled process."""

    name: str
    start: int
    end: int
    file_offset: int


@dataclass(frozen=True)
class Symbol:
    """A function entry point at an absolute runtime address."""

    module: str
    name: str
    address: int

    @classmethod
    def from_raw_offset(
        cls, region: MemoryRegion, name: str, raw_offset: int
    ) -> "Symbol":
        address = (region.start - region.file_offset + raw_offset) & ADDRESS_MASK
        return cls(module=region.name, name=name, address=address)


def build_symbol_table(symbols: Iterable[Symbol]) -> List[Symbol]:
    # sorted() is stable, so co-located symbols keep their trace order
    return sorted(symbols, key=lambda symbol: symbol.address)


def format_address(address: int) -> str:
    return format(address, "x")


class SymbolResolver:
    """Resolve addresses against a symbol table sorted by address.

    An address belongs to the closest symbol at or below it, as long as it
    falls before both the next symbol (or the end of the module for the
    last symbol) and ``max_function_size`` bytes past the symbol's start.
    Anything else is rendered as a hexadecimal address.
    """

    def __init__(
        self,
        symbols: List[Symbol],
        regions: Mapping[str, MemoryRegion],
        *,
        max_function_size: int = MAX_FUNCTION_SIZE,
    ) -> None:
        self._symbols = symbols
        self._addresses = [symbol.address for symbol in symbols]
        self._regions = regions
        self._max_function_size = max_function_size
        self._cached_lookup: Callable[[int], str] = functools.lru_cache(maxsize=None)(
            self._lookup
        )

    def __len__(self) -> int:
        return len(self._symbols)

    def _upper_bound(self, index: int) -> int:
        symbol = self._symbols[index]
        if index + 1 < len(self._symbols):
            upper = self._symbols[index + 1].address
        else:
            region = self._regions.get(symbol.module)
            upper = region.end if region is not None else symbol.address
        return min(upper, symbol.address + self._max_function_size)

    def _lookup(self, address: int) -> str:
        index = bisect.bisect_right(self._addresses, address) - 1
        if index < 0:
            return format_address(address)
        if address >= self._upper_bound(index):
            return format_address(address)
        return self._symbols[index].name

    def resolve(self, address: int) -> str:
        return self._cached_lookup(address)
