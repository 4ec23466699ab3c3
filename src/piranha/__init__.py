from ._errors import DecodeError
from ._errors import MalformedVarint
from ._errors import MissingModuleName
from ._errors import PiranhaError
from ._errors import StructureError
from ._errors import ThreadNotFound
from ._errors import TopLevelTagNotFound
from ._errors import UnexpectedTag
from ._errors import UnknownModule
from ._logging import set_log_level
from ._version import __version__
from .calltree import CallTreeNode
from .calltree import DecodeResult
from .calltree import Orientation
from .calltree import PerThreadTrees
from .decoder import TraceDecoder
from .decoder import decode
from .decoder import get_tree
from .decoder import list_thread_ids
from .reader import CursorReader
from .symbols import MemoryRegion
from .symbols import Symbol
from .symbols import SymbolResolver
from .tags import Tag
from .writer import TraceWriter

__all__ = [
    "CallTreeNode",
    "CursorReader",
    "DecodeError",
    "DecodeResult",
    "MalformedVarint",
    "MemoryRegion",
    "MissingModuleName",
    "Orientation",
    "PerThreadTrees",
    "PiranhaError",
    "StructureError",
    "Symbol",
    "SymbolResolver",
    "Tag",
    "ThreadNotFound",
    "TopLevelTagNotFound",
    "TraceDecoder",
    "TraceWriter",
    "UnexpectedTag",
    "UnknownModule",
    "__version__",
    "decode",
    "get_tree",
    "list_thread_ids",
    "set_log_level",
]
