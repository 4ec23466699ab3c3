from typing import Any
from typing import Optional


class PiranhaError(Exception):
    """Exceptions raised in this package."""


class PiranhaCommandError(PiranhaError):
    """Exceptions raised from this package's CLI commands."""

    def __init__(self, *args: Any, exit_code: int) -> None:
        super().__init__(*args)
        self.exit_code = exit_code


class DecodeError(PiranhaError):
    """A trace could not be decoded.

    Args:
        message: What went wrong.
        offset: Byte offset in the trace where the problem was found.
        tag: Tag id of the element being processed, if any.
    """

    def __init__(
        self, message: str, *, offset: Optional[int] = None, tag: Optional[int] = None
    ) -> None:
        self.message = message
        self.offset = offset
        self.tag = tag
        super().__init__(self._describe())

    def _describe(self) -> str:
        details = []
        if self.offset is not None:
            details.append(f"offset {self.offset:#x}")
        if self.tag is not None:
            details.append(f"tag {self.tag:#x}")
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class MalformedVarint(DecodeError):
    """A tag id or size header has no width marker in its leading byte."""


class StructureError(DecodeError):
    """The nesting or extent of the elements is inconsistent."""


class UnexpectedTag(DecodeError):
    """An element appeared inside a container that does not allow it."""


class MissingModuleName(DecodeError):
    """A module in the symbol section has no name."""


class UnknownModule(DecodeError):
    """A module in the symbol section has no memory region."""


class TopLevelTagNotFound(DecodeError):
    """A required top-level section is absent from the trace."""


class ThreadNotFound(PiranhaError):
    """The requested thread was never sampled."""
