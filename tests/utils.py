"""Utilities / Helpers for writing tests."""
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

from piranha import Tag
from piranha import TraceWriter

Region = Tuple[str, int, int, int]
ThreadSample = Tuple[int, str, Sequence[int]]

# app symbols live at start - file_offset + raw offset: main at 0x8000,
# work at 0x8080
EXAMPLE_REGIONS: List[Region] = [
    ("libc.so", 0x1000, 0x2000, 0),
    ("app", 0x8000, 0x9000, 0x100),
]
EXAMPLE_MODULES: Dict[str, List[Tuple[int, str]]] = {
    "libc.so": [(0x10, "read"), (0x200, "write")],
    "app": [(0x100, "main"), (0x180, "work")],
}
EXAMPLE_TICKS: List[List[ThreadSample]] = [
    [
        (1, "R", [0x1015, 0x8090, 0x8004]),
        (2, "S", [0x1204, 0x8010]),
    ],
    [
        (1, "S", [0x1015, 0x8090, 0x8004]),
        (2, "S", [0x1800, 0x8010]),
    ],
]


def make_trace(
    regions: Iterable[Region] = (),
    modules: Optional[Dict[str, List[Tuple[int, str]]]] = None,
    ticks: Iterable[Iterable[ThreadSample]] = (),
    *,
    header: bool = True,
) -> bytes:
    writer = TraceWriter()
    if header:
        writer.write_header()
    writer.write_memory_map(regions)
    writer.write_symbols(modules or {})
    with writer.element(Tag.SAMPLES):
        for tick in ticks:
            writer.write_sample(tick)
    return writer.getvalue()


def example_trace() -> bytes:
    return make_trace(EXAMPLE_REGIONS, EXAMPLE_MODULES, EXAMPLE_TICKS)
