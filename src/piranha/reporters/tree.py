from collections import deque
from typing import Any
from typing import Deque
from typing import Iterable
from typing import Optional
from typing import TextIO
from typing import Tuple

from rich import print as rprint
from rich.text import Text
from rich.tree import Tree

from piranha.calltree import CallTreeNode
from piranha.calltree import DecodeResult
from piranha.calltree import Orientation
from piranha.decoder import get_tree
from piranha.decoder import list_thread_ids
from piranha.reporters.common import format_percent
from piranha.reporters.common import format_thread_name
from piranha.reporters.common import percent_of_samples


def _percent_style(percent: float) -> str:
    if percent > 60:
        return "red"
    elif percent > 20:
        return "yellow"
    elif percent > 5:
        return "green"
    else:
        return "bright_green"


class TreeReporter:
    """Render call trees in the terminal, hottest paths first."""

    def __init__(
        self,
        result: DecodeResult,
        *,
        max_depth: Optional[int] = None,
        threshold: float = 0.0,
    ) -> None:
        self.result = result
        self.max_depth = max_depth
        self.threshold = threshold

    @classmethod
    def from_result(cls, result: DecodeResult, **kwargs: Any) -> "TreeReporter":
        return cls(result, **kwargs)

    def _label(self, name: str, node: CallTreeNode) -> Text:
        percent = percent_of_samples(node.count, self.result)
        return Text.assemble(
            (f"({format_percent(percent)}) ", _percent_style(percent)),
            (name, "bold"),
        )

    def build_tree(self, thread_id: int, orientation: Orientation) -> Tree:
        root = get_tree(self.result, thread_id, orientation)
        samples = self.result.threads[thread_id].samples
        tree = Tree(
            Text(
                f"{format_thread_name(thread_id)} {orientation.value} "
                f"({samples} samples)"
            )
        )

        # Breadth first with an explicit queue so deep stacks cannot recurse
        worklist: Deque[Tuple[CallTreeNode, Tree, int]] = deque([(root, tree, 0)])
        while worklist:
            node, view, depth = worklist.popleft()
            if self.max_depth is not None and depth >= self.max_depth:
                continue
            for name, child in node.sorted_children():
                percent = percent_of_samples(child.count, self.result)
                if percent < self.threshold:
                    break
                child_view = view.add(self._label(name, child))
                worklist.append((child, child_view, depth + 1))
        return tree

    def render(
        self,
        outfile: Optional[TextIO] = None,
        *,
        thread_ids: Optional[Iterable[int]] = None,
        orientations: Iterable[Orientation] = tuple(Orientation),
    ) -> None:
        if thread_ids is None:
            thread_ids = list_thread_ids(self.result)
        orientations = tuple(orientations)
        for thread_id in thread_ids:
            for orientation in orientations:
                rprint(self.build_tree(thread_id, orientation), file=outfile)
