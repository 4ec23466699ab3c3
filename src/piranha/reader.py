"""Cursor-based reader for the nested tag/size trace format.

Every element in a trace is a tag id, a size and ``size`` bytes of payload.
Tag ids and sizes are variable-width integers of 1 to 4 bytes whose width
is given by the highest set bit of the first byte (0x80 for one byte, 0x40
for two, 0x20 for three and 0x10 for four). Sizes have that marker bit
masked off; tag ids keep it, so the one-byte id ``0x81`` is stored as the
single byte ``0x81``.

The reader knows nothing about what the tags mean. It only moves a cursor
around the tree of elements and reads fixed-offset fields out of the
current element's payload.
"""
import struct
from dataclasses import dataclass
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from piranha._errors import MalformedVarint
from piranha._errors import StructureError
from piranha._errors import TopLevelTagNotFound
from piranha.tags import describe_tag

ByteString = Union[bytes, bytearray, memoryview]

# (marker bit in the leading byte, total width in bytes)
WIDTH_MARKERS = ((0x80, 1), (0x40, 2), (0x20, 3), (0x10, 4))

_UINT32 = struct.Struct(">I")


def _read_varint(
    data: bytes, pos: int, keep_marker: bool, limit: Optional[int]
) -> Tuple[int, int]:
    if limit is None:
        limit = len(data)
    if pos >= limit:
        raise StructureError("truncated element header", offset=pos)
    first = data[pos]
    for marker, width in WIDTH_MARKERS:
        if first & marker:
            break
    else:
        raise MalformedVarint(
            f"invalid variable-width integer lead byte {first:#04x}", offset=pos
        )

    end = pos + width
    if end > limit:
        raise StructureError("truncated element header", offset=pos)
    value = first if keep_marker else first & (marker - 1)
    for byte in data[pos + 1 : end]:
        value = (value << 8) | byte
    return value, end


def read_size(data: bytes, pos: int, limit: Optional[int] = None) -> Tuple[int, int]:
    """Decode an element size at ``pos``.

    Returns the value and the position just after it. The encoding may not
    extend past ``limit`` (the end of ``data`` by default).
    """
    return _read_varint(data, pos, keep_marker=False, limit=limit)


def read_tag_id(
    data: bytes, pos: int, limit: Optional[int] = None
) -> Tuple[int, int]:
    """Decode an element tag id at ``pos``, keeping the width marker bits."""
    return _read_varint(data, pos, keep_marker=True, limit=limit)


@dataclass(frozen=True)
class _SavedFrame:
    header_offset: int
    position: int
    size: int
    tag: int


class CursorReader:
    """Walk the element tree of a fully buffered trace.

    The cursor always points at one element. ``position`` is the offset of
    that element's payload, ``size`` its length and ``tag`` its id. Moving
    into an element saves the current state on a stack so that ``ascend``
    can return to it.
    """

    def __init__(self, data: ByteString) -> None:
        self._data = bytes(data)
        self._stack: List[_SavedFrame] = []
        self.header_offset = 0
        self.position = 0
        self.size = 0
        self.tag = 0
        if self._data:
            self.reset()

    @property
    def depth(self) -> int:
        return len(self._stack)

    def reset(self) -> None:
        """Move back to the first top-level element."""
        self._stack.clear()
        self.position = 0
        self._read_header()

    def _parent_end(self) -> int:
        if self._stack:
            parent = self._stack[-1]
            return parent.position + parent.size
        return len(self._data)

    def _read_header(self) -> None:
        # A child's header and payload must both fit inside its parent
        end = self._parent_end()
        self.header_offset = self.position
        tag, pos = read_tag_id(self._data, self.position, end)
        size, pos = read_size(self._data, pos, end)
        if pos + size > end:
            container = "its parent" if self._stack else "the trace"
            raise StructureError(
                f"element of {size} bytes runs past the end of {container}",
                offset=self.header_offset,
                tag=tag,
            )
        self.tag = tag
        self.size = size
        self.position = pos

    def descend(self) -> None:
        """Enter the current element and move to its first child."""
        self._stack.append(
            _SavedFrame(self.header_offset, self.position, self.size, self.tag)
        )
        self._read_header()

    def advance(self) -> None:
        """Skip over the current element to the next sibling."""
        self.position += self.size
        self._read_header()

    def ascend(self) -> None:
        """Return to the element that was current before ``descend``."""
        if not self._stack:
            raise StructureError(
                "cannot ascend from the top level", offset=self.header_offset
            )
        frame = self._stack.pop()
        self.header_offset = frame.header_offset
        self.position = frame.position
        self.size = frame.size
        self.tag = frame.tag

    def is_last_sibling(self) -> bool:
        return self.position + self.size >= self._parent_end()

    def for_each_child(self) -> Iterator[int]:
        """Visit every child of the current element in order.

        Yields the tag of each child with the cursor positioned on it and
        returns to the container once the last child has been visited. The
        iterator must be exhausted for the cursor to end up back on the
        container.
        """
        if self.size == 0:
            return
        self.descend()
        while True:
            yield self.tag
            if self.is_last_sibling():
                break
            self.advance()
        self.ascend()

    def seek_top_level(self, tag: int) -> None:
        """Position the cursor on the first top-level element with ``tag``."""
        if not self._data:
            raise TopLevelTagNotFound(
                f"no {describe_tag(tag)} section in an empty trace", tag=tag
            )
        self.reset()
        while self.tag != tag:
            if self.is_last_sibling():
                raise TopLevelTagNotFound(
                    f"no {describe_tag(tag)} section in trace", tag=tag
                )
            self.advance()

    def _check_in_element(self, pos: int, width: int) -> None:
        if pos < self.position or pos + width > self.position + self.size:
            raise StructureError(
                f"read of {width} bytes at payload offset {pos - self.position} "
                f"overruns a {self.size} byte element",
                offset=self.header_offset,
                tag=self.tag,
            )

    def read_uint32(self, offset: int) -> int:
        """Read a big-endian 32-bit integer at ``offset`` into the payload."""
        pos = self.position + offset
        self._check_in_element(pos, 4)
        value: int = _UINT32.unpack_from(self._data, pos)[0]
        return value

    def read_cstring(self, offset: int = 0) -> str:
        """Read a NUL-terminated string at ``offset`` into the payload.

        A string that runs into the end of the element without a NUL is
        cut off there.
        """
        pos = self.position + offset
        end = self.position + self.size
        self._check_in_element(pos, 0)
        nul = self._data.find(b"\0", pos, end)
        if nul == -1:
            nul = end
        return self._data[pos:nul].decode("utf-8", errors="replace")

    def iter_uint32(self) -> Iterator[int]:
        """Read the whole payload as consecutive big-endian 32-bit integers."""
        if self.size % _UINT32.size:
            raise StructureError(
                f"payload of {self.size} bytes is not a whole number of "
                "32-bit values",
                offset=self.header_offset,
                tag=self.tag,
            )
        for offset in range(0, self.size, _UINT32.size):
            yield self.read_uint32(offset)
