"""Fold resolved stacks into per-thread call trees."""
import enum
from dataclasses import dataclass
from dataclasses import field
from typing import Dict
from typing import Iterable
from typing import List
from typing import Sequence
from typing import Tuple


class Orientation(enum.Enum):
    BOTTOM_UP = "bottom-up"
    TOP_DOWN = "top-down"


@dataclass
class CallTreeNode:
    """A node in the trie of call paths.

    ``count`` is the number of stacks whose path passes through this node.
    Children are keyed by symbol name; the same name reached through two
    different paths is two different nodes.
    """

    count: int = 0
    children: Dict[str, "CallTreeNode"] = field(default_factory=dict)

    def sorted_children(self) -> List[Tuple[str, "CallTreeNode"]]:
        return sorted(
            self.children.items(), key=lambda item: (-item[1].count, item[0])
        )


@dataclass
class PerThreadTrees:
    bottom_up: CallTreeNode = field(default_factory=CallTreeNode)
    top_down: CallTreeNode = field(default_factory=CallTreeNode)
    samples: int = 0
    running_samples: int = 0

    def tree(self, orientation: Orientation) -> CallTreeNode:
        if orientation is Orientation.BOTTOM_UP:
            return self.bottom_up
        return self.top_down


@dataclass
class DecodeResult:
    threads: Dict[int, PerThreadTrees] = field(default_factory=dict)
    total_samples: int = 0


def insert_path(root: CallTreeNode, names: Iterable[str]) -> None:
    """Count one stack along ``names``, creating nodes as needed."""
    node = root
    for name in names:
        try:
            node = node.children[name]
        except KeyError:
            node = node.children[name] = CallTreeNode()
        node.count += 1
    if node is not root:
        root.count += 1


class CallTreeAggregator:
    def __init__(self) -> None:
        self._threads: Dict[int, PerThreadTrees] = {}

    def add_stack(self, thread_id: int, stack: Sequence[str], running: bool) -> None:
        """Record one thread's stack, given innermost frame first."""
        trees = self._threads.get(thread_id)
        if trees is None:
            trees = self._threads[thread_id] = PerThreadTrees()
        trees.samples += 1
        if running:
            trees.running_samples += 1
        insert_path(trees.bottom_up, stack)
        insert_path(trees.top_down, reversed(stack))

    def result(self, total_samples: int) -> DecodeResult:
        return DecodeResult(threads=self._threads, total_samples=total_samples)
