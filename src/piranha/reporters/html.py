import sys
from typing import Any
from typing import Dict
from typing import List
from typing import TextIO

from piranha.calltree import CallTreeNode
from piranha.calltree import DecodeResult
from piranha.calltree import Orientation
from piranha.decoder import list_thread_ids
from piranha.reporters.common import format_percent
from piranha.reporters.common import format_thread_name
from piranha.reporters.common import percent_of_samples
from piranha.reporters.templates import render_report

# Templates render nested lists recursively, so very deep paths are cut off
MAX_DEPTH = sys.getrecursionlimit() // 20

ORIENTATION_TITLES = {
    Orientation.BOTTOM_UP: "Bottom-up (innermost frame first)",
    Orientation.TOP_DOWN: "Top-down (outermost frame first)",
}

NodeDict = Dict[str, Any]


class HTMLReporter:
    def __init__(self, data: List[Dict[str, Any]], *, total_samples: int) -> None:
        self.data = data
        self.total_samples = total_samples

    @classmethod
    def _generate_nodes(
        cls, root: CallTreeNode, result: DecodeResult
    ) -> List[NodeDict]:
        top: List[NodeDict] = []
        worklist = [(root, top, 0)]
        while worklist:
            node, siblings, depth = worklist.pop()
            for name, child in node.sorted_children():
                entry: NodeDict = {
                    "name": name,
                    "count": child.count,
                    "percent": format_percent(percent_of_samples(child.count, result)),
                    "children": [],
                }
                siblings.append(entry)
                if depth + 1 >= MAX_DEPTH:
                    if child.children:
                        entry["children"].append(
                            {
                                "name": "<STACK TOO DEEP>",
                                "count": child.count,
                                "percent": entry["percent"],
                                "children": [],
                            }
                        )
                    continue
                worklist.append((child, entry["children"], depth + 1))
        return top

    @classmethod
    def from_result(cls, result: DecodeResult) -> "HTMLReporter":
        data = []
        for thread_id in list_thread_ids(result):
            trees = result.threads[thread_id]
            data.append(
                {
                    "thread_id": thread_id,
                    "name": format_thread_name(thread_id),
                    "samples": trees.samples,
                    "trees": [
                        {
                            "key": orientation.value,
                            "title": ORIENTATION_TITLES[orientation],
                            "children": cls._generate_nodes(
                                trees.tree(orientation), result
                            ),
                        }
                        for orientation in Orientation
                    ],
                }
            )
        return cls(data, total_samples=result.total_samples)

    def render(self, outfile: TextIO, trace_name: str = "") -> None:
        html_code = render_report(
            kind="call_tree",
            data=self.data,
            total_samples=self.total_samples,
            trace_name=trace_name,
        )
        print(html_code, file=outfile)
