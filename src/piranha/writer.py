"""Produce traces in the format understood by :mod:`piranha.reader`.

This mirrors what the sampling profiler emits: elements are opened with a
placeholder four byte size which is patched in when the element is closed.
"""
import contextlib
import io
import struct
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Tuple

from piranha.reader import WIDTH_MARKERS
from piranha.tags import Tag

MAX_SIZE = 0x0FFFFFFF
FORMAT_NAME = "piranha"


def encode_size(value: int, width: Optional[int] = None) -> bytes:
    """Encode an element size, using the narrowest width unless told otherwise."""
    if not 0 <= value <= MAX_SIZE:
        raise ValueError(f"Invalid size {value}, must be between 0 and {MAX_SIZE:#x}")
    for marker, candidate in WIDTH_MARKERS:
        if width is not None and candidate != width:
            continue
        if value < marker << (8 * (candidate - 1)):
            return (value | marker << (8 * (candidate - 1))).to_bytes(candidate, "big")
        if width is not None:
            break
    raise ValueError(f"Size {value} does not fit in {width} bytes")


def encode_tag_id(tag: int) -> bytes:
    """Encode a tag id. The id already carries its own width marker."""
    width = max(1, (tag.bit_length() + 7) // 8)
    if width > 4:
        raise ValueError(f"Invalid tag id {tag:#x}, more than 4 bytes long")
    encoded = tag.to_bytes(width, "big")
    marker, _ = WIDTH_MARKERS[width - 1]
    if encoded[0] & ~(marker - 1) != marker:
        raise ValueError(
            f"Invalid tag id {tag:#x}, leading byte does not mark a "
            f"{width} byte id"
        )
    return encoded


class TraceWriter:
    """Build a trace element by element.

    Example::

        writer = TraceWriter()
        with writer.element(Tag.SAMPLES):
            ...
        data = writer.getvalue()
    """

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._open: List[int] = []

    def start_element(self, tag: int) -> None:
        self._buffer.write(encode_tag_id(tag))
        self._open.append(self._buffer.tell())
        self._buffer.write(b"\0\0\0\0")

    def end_element(self) -> None:
        if not self._open:
            raise ValueError("No open element to end")
        size_offset = self._open.pop()
        end = self._buffer.tell()
        self._buffer.seek(size_offset)
        self._buffer.write(encode_size(end - size_offset - 4, width=4))
        self._buffer.seek(end)

    @contextlib.contextmanager
    def element(self, tag: int) -> Iterator[None]:
        self.start_element(tag)
        yield
        self.end_element()

    def write_bytes(self, data: bytes) -> None:
        self._buffer.write(data)

    def write_uint32(self, value: int) -> None:
        self._buffer.write(struct.pack(">I", value))

    def write_cstring(self, value: str) -> None:
        self._buffer.write(value.encode("utf-8") + b"\0")

    def getvalue(self) -> bytes:
        if self._open:
            raise ValueError(f"{len(self._open)} elements are still open")
        return self._buffer.getvalue()

    def write_header(self, format_name: str = FORMAT_NAME) -> None:
        with self.element(Tag.HEADER):
            self.write_cstring(format_name)

    def write_memory_map(self, regions: Iterable[Tuple[str, int, int, int]]) -> None:
        """Write the memory map from ``(name, start, end, file_offset)`` tuples."""
        with self.element(Tag.MEMORY_MAP):
            for name, start, end, file_offset in regions:
                with self.element(Tag.REGION):
                    self.write_uint32(start)
                    self.write_uint32(end)
                    self.write_uint32(file_offset)
                    self.write_cstring(name)

    def write_symbols(self, modules: Mapping[str, Iterable[Tuple[int, str]]]) -> None:
        """Write the symbol section from ``{module: [(raw_offset, name)]}``."""
        with self.element(Tag.SYMBOLS):
            for module, symbols in modules.items():
                with self.element(Tag.MODULE):
                    with self.element(Tag.MODULE_NAME):
                        self.write_cstring(module)
                    for raw_offset, name in symbols:
                        with self.element(Tag.SYMBOL):
                            self.write_uint32(raw_offset)
                            self.write_cstring(name)

    def write_sample(
        self, threads: Iterable[Tuple[int, str, Sequence[int]]]
    ) -> None:
        """Write one tick from ``(thread_id, status, leaf_first_stack)`` tuples."""
        with self.element(Tag.SAMPLE):
            for thread_id, status, stack in threads:
                with self.element(Tag.THREAD_SAMPLE):
                    with self.element(Tag.THREAD_PID):
                        self.write_uint32(thread_id)
                    with self.element(Tag.THREAD_STATUS):
                        self.write_cstring(status)
                    with self.element(Tag.STACK):
                        for address in stack:
                            self.write_uint32(address)
