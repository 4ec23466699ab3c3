import struct

import pytest

from piranha import CallTreeNode
from piranha import DecodeError
from piranha import MemoryRegion
from piranha import MissingModuleName
from piranha import Orientation
from piranha import StructureError
from piranha import Symbol
from piranha import Tag
from piranha import ThreadNotFound
from piranha import TopLevelTagNotFound
from piranha import TraceDecoder
from piranha import TraceWriter
from piranha import UnexpectedTag
from piranha import UnknownModule
from piranha import decode
from piranha import get_tree
from piranha import list_thread_ids
from piranha.writer import encode_size
from piranha.writer import encode_tag_id
from tests.utils import EXAMPLE_MODULES
from tests.utils import EXAMPLE_REGIONS
from tests.utils import example_trace
from tests.utils import make_trace


def chain(*names, count):
    """Build a single-path tree below an anonymous root."""
    node = CallTreeNode(count=count)
    for name in reversed(names):
        node = CallTreeNode(count=count, children={name: node})
    return node.children


def test_memory_map_includes_every_region():
    # GIVEN
    decoder = TraceDecoder(example_trace())

    # WHEN
    regions = decoder.load_memory_map()

    # THEN
    assert regions == {
        "libc.so": MemoryRegion("libc.so", 0x1000, 0x2000, 0),
        "app": MemoryRegion("app", 0x8000, 0x9000, 0x100),
    }


def test_symbols_are_absolute_and_sorted():
    # GIVEN
    decoder = TraceDecoder(example_trace())
    decoder.load_memory_map()

    # WHEN
    symbols = decoder.load_symbols()

    # THEN
    assert symbols == [
        Symbol("libc.so", "read", 0x1010),
        Symbol("libc.so", "write", 0x1200),
        Symbol("app", "main", 0x8000),
        Symbol("app", "work", 0x8080),
    ]


def test_iter_samples_keeps_raw_addresses():
    # GIVEN
    decoder = TraceDecoder(example_trace())

    # WHEN
    ticks = list(decoder.iter_samples())

    # THEN
    assert len(ticks) == 2
    first = ticks[0][0]
    assert first.thread_id == 1
    assert first.running is True
    assert first.raw_addresses == [0x1015, 0x8090, 0x8004]
    assert ticks[1][1].running is False


def test_decode_example_trace():
    # WHEN
    result = decode(example_trace())

    # THEN
    assert result.total_samples == 2
    assert list_thread_ids(result) == [1, 2]

    thread1 = result.threads[1]
    assert thread1.bottom_up.count == 2
    assert thread1.bottom_up.children == chain("read", "work", "main", count=2)
    assert thread1.top_down.children == chain("main", "work", "read", count=2)
    assert thread1.samples == 2
    assert thread1.running_samples == 1

    thread2 = result.threads[2]
    assert thread2.bottom_up.children == {
        "write": CallTreeNode(1, {"main": CallTreeNode(1)}),
        "1800": CallTreeNode(1, {"main": CallTreeNode(1)}),
    }
    assert thread2.top_down.children == {
        "main": CallTreeNode(2, {"write": CallTreeNode(1), "1800": CallTreeNode(1)})
    }
    assert thread2.running_samples == 0


def test_decode_is_repeatable():
    data = example_trace()

    assert decode(data) == decode(data)


def test_decode_accepts_a_bytearray_without_header():
    data = bytearray(make_trace(EXAMPLE_REGIONS, EXAMPLE_MODULES, header=False))

    result = decode(data)

    assert result.total_samples == 0
    assert result.threads == {}


def test_total_samples_counts_ticks_not_threads():
    # GIVEN
    ticks = [
        [(1, "R", [0x1010]), (2, "R", [0x1010]), (3, "R", [0x1010])],
        [(1, "R", [0x1010])],
    ]

    # WHEN
    result = decode(make_trace(EXAMPLE_REGIONS, EXAMPLE_MODULES, ticks))

    # THEN
    assert result.total_samples == 2
    assert result.threads[1].samples == 2
    assert result.threads[3].samples == 1


def test_thread_sample_without_stack_is_an_empty_stack():
    # GIVEN
    writer = TraceWriter()
    writer.write_memory_map(EXAMPLE_REGIONS)
    writer.write_symbols(EXAMPLE_MODULES)
    with writer.element(Tag.SAMPLES):
        with writer.element(Tag.SAMPLE):
            with writer.element(Tag.THREAD_SAMPLE):
                with writer.element(Tag.THREAD_PID):
                    writer.write_uint32(9)

    # WHEN
    result = decode(writer.getvalue())

    # THEN
    assert result.threads[9].samples == 1
    assert result.threads[9].bottom_up == CallTreeNode()
    assert result.threads[9].top_down == CallTreeNode()


def test_get_tree():
    result = decode(example_trace())

    tree = get_tree(result, 1, Orientation.TOP_DOWN)

    assert tree is result.threads[1].top_down


def test_get_tree_for_unknown_thread():
    result = decode(example_trace())

    with pytest.raises(ThreadNotFound):
        get_tree(result, 3, Orientation.BOTTOM_UP)


@pytest.mark.parametrize(
    "missing",
    [Tag.MEMORY_MAP, Tag.SYMBOLS, Tag.SAMPLES],
)
def test_missing_section(missing):
    # GIVEN
    writer = TraceWriter()
    writer.write_header()
    if missing != Tag.MEMORY_MAP:
        writer.write_memory_map(EXAMPLE_REGIONS)
    if missing != Tag.SYMBOLS:
        writer.write_symbols(EXAMPLE_MODULES)
    if missing != Tag.SAMPLES:
        with writer.element(Tag.SAMPLES):
            pass

    # WHEN / THEN
    with pytest.raises(TopLevelTagNotFound) as exc_info:
        decode(writer.getvalue())
    assert exc_info.value.tag == missing


def test_empty_trace():
    with pytest.raises(TopLevelTagNotFound):
        decode(b"")


def test_malformed_bytes_raise_decode_error():
    with pytest.raises(DecodeError):
        decode(b"\x00\x01\x02\x03")


def test_module_without_name():
    # GIVEN
    writer = TraceWriter()
    writer.write_memory_map(EXAMPLE_REGIONS)
    with writer.element(Tag.SYMBOLS):
        with writer.element(Tag.MODULE):
            with writer.element(Tag.SYMBOL):
                writer.write_uint32(0x10)
                writer.write_cstring("read")
    with writer.element(Tag.SAMPLES):
        pass

    # WHEN / THEN
    with pytest.raises(MissingModuleName) as exc_info:
        decode(writer.getvalue())
    assert exc_info.value.tag == Tag.MODULE


def test_module_without_region():
    data = make_trace(EXAMPLE_REGIONS, {"libm.so": [(0x10, "sqrt")]})

    with pytest.raises(UnknownModule, match="libm.so"):
        decode(data)


def _trace_with_samples_payload(write_payload):
    writer = TraceWriter()
    writer.write_memory_map(EXAMPLE_REGIONS)
    writer.write_symbols(EXAMPLE_MODULES)
    with writer.element(Tag.SAMPLES):
        write_payload(writer)
    return writer.getvalue()


def test_non_sample_inside_samples():
    def payload(writer):
        with writer.element(Tag.REGION):
            writer.write_uint32(0)

    with pytest.raises(UnexpectedTag) as exc_info:
        decode(_trace_with_samples_payload(payload))
    assert exc_info.value.tag == Tag.REGION
    assert exc_info.value.offset is not None


def test_non_thread_sample_inside_sample():
    def payload(writer):
        with writer.element(Tag.SAMPLE):
            with writer.element(Tag.STACK):
                writer.write_uint32(0x1010)

    with pytest.raises(UnexpectedTag):
        decode(_trace_with_samples_payload(payload))


def test_unknown_element_inside_thread_sample():
    def payload(writer):
        with writer.element(Tag.SAMPLE):
            with writer.element(Tag.THREAD_SAMPLE):
                with writer.element(Tag.THREAD_PID):
                    writer.write_uint32(1)
                with writer.element(Tag.MODULE_NAME):
                    writer.write_cstring("oops")

    with pytest.raises(UnexpectedTag) as exc_info:
        decode(_trace_with_samples_payload(payload))
    assert exc_info.value.tag == Tag.MODULE_NAME


def test_thread_sample_without_thread_id():
    def payload(writer):
        with writer.element(Tag.SAMPLE):
            with writer.element(Tag.THREAD_SAMPLE):
                with writer.element(Tag.STACK):
                    writer.write_uint32(0x1010)

    with pytest.raises(StructureError):
        decode(_trace_with_samples_payload(payload))


def test_stack_with_partial_address():
    def payload(writer):
        with writer.element(Tag.SAMPLE):
            with writer.element(Tag.THREAD_SAMPLE):
                with writer.element(Tag.THREAD_PID):
                    writer.write_uint32(1)
                with writer.element(Tag.STACK):
                    writer.write_bytes(b"\x00\x00\x10")

    with pytest.raises(StructureError):
        decode(_trace_with_samples_payload(payload))


def test_unexpected_element_in_memory_map():
    writer = TraceWriter()
    with writer.element(Tag.MEMORY_MAP):
        with writer.element(Tag.MODULE):
            pass

    with pytest.raises(UnexpectedTag):
        TraceDecoder(writer.getvalue()).load_memory_map()


def test_unexpected_element_in_module():
    writer = TraceWriter()
    writer.write_memory_map(EXAMPLE_REGIONS)
    with writer.element(Tag.SYMBOLS):
        with writer.element(Tag.MODULE):
            with writer.element(Tag.MODULE_NAME):
                writer.write_cstring("app")
            with writer.element(Tag.STACK):
                writer.write_uint32(0)
    decoder = TraceDecoder(writer.getvalue())
    decoder.load_memory_map()

    with pytest.raises(UnexpectedTag):
        decoder.load_symbols()


def test_region_spilling_out_of_the_memory_map():
    # GIVEN
    region = struct.pack(">III", 0x1000, 0x2000, 0) + b"x\0"
    data = b"\x81\x82" + b"\x82" + encode_size(len(region)) + region

    # WHEN / THEN
    with pytest.raises(StructureError) as exc_info:
        TraceDecoder(data).load_memory_map()
    assert exc_info.value.tag == Tag.REGION


def _element(tag, *payload):
    body = b"".join(payload)
    return encode_tag_id(tag) + encode_size(len(body)) + body


@pytest.mark.parametrize("depth", [1, 40, 4100])
def test_decode_trace_with_minimal_width_sizes(depth):
    # GIVEN
    # Stack payloads of 4, 160 and 16400 bytes need 1, 2 and 3 byte sizes
    memory_map = _element(
        Tag.MEMORY_MAP,
        _element(Tag.REGION, struct.pack(">III", 0x1000, 0x2000, 0), b"libc.so\0"),
    )
    symbols = _element(
        Tag.SYMBOLS,
        _element(
            Tag.MODULE,
            _element(Tag.MODULE_NAME, b"libc.so\0"),
            _element(Tag.SYMBOL, struct.pack(">I", 0x10), b"read\0"),
        ),
    )
    samples = _element(
        Tag.SAMPLES,
        _element(
            Tag.SAMPLE,
            _element(
                Tag.THREAD_SAMPLE,
                _element(Tag.THREAD_PID, struct.pack(">I", 7)),
                _element(Tag.THREAD_STATUS, b"R\0"),
                _element(Tag.STACK, struct.pack(">I", 0x1015) * depth),
            ),
        ),
    )

    # WHEN
    result = decode(memory_map + symbols + samples)

    # THEN
    assert result.total_samples == 1
    thread = result.threads[7]
    assert thread.running_samples == 1
    assert thread.bottom_up.count == 1
    assert list(thread.bottom_up.children) == ["read"]
    assert thread.bottom_up.children["read"].count == 1
