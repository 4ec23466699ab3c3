import enum


class Tag(enum.IntEnum):
    """Element ids used in a piranha trace.

    Ids are stored with their width marker bits, so every one-byte id has
    the 0x80 bit set.
    """

    HEADER = 0x1A45DFA3
    MEMORY_MAP = 0x81
    REGION = 0x82
    SAMPLES = 0x83
    SAMPLE = 0x84
    THREAD_SAMPLE = 0x85
    THREAD_STATUS = 0x86
    STACK = 0x87
    SYMBOLS = 0x88
    MODULE = 0x89
    MODULE_NAME = 0x8A
    SYMBOL = 0x8B
    THREAD_PID = 0x8C


def describe_tag(tag: int) -> str:
    try:
        return Tag(tag).name
    except ValueError:
        return f"{tag:#x}"
