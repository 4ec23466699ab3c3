import json
from collections import Counter
from pathlib import Path
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import TextIO
from typing import Tuple

from rich import print as rprint
from rich.markup import escape
from rich.table import Column
from rich.table import Table

from piranha.calltree import DecodeResult
from piranha.decoder import list_thread_ids
from piranha.reporters.common import format_percent
from piranha.reporters.common import format_thread_name
from piranha.reporters.common import percent_of_samples


class StatsReporter:
    """Summarize where samples landed across all threads."""

    def __init__(self, result: DecodeResult, num_largest: int) -> None:
        self.result = result
        self.num_largest = num_largest

    def render(
        self,
        json_output_file: Optional[Path] = None,
        outfile: Optional[TextIO] = None,
    ) -> None:
        if json_output_file:
            self._render_to_json(json_output_file)
        else:
            self._render_to_terminal(outfile)

    def _render_to_terminal(self, outfile: Optional[TextIO]) -> None:
        rprint(f"📏 [bold]Total samples:[/] {self.result.total_samples}", file=outfile)
        rprint(f"🧵 [bold]Threads:[/] {len(self.result.threads)}", file=outfile)

        threads = Table(
            Column("Thread"),
            Column("Samples", justify="right"),
            Column("Samples %", justify="right"),
            Column("Running", justify="right"),
        )
        for thread_id, samples, running in self._get_thread_rows():
            threads.add_row(
                format_thread_name(thread_id),
                str(samples),
                format_percent(percent_of_samples(samples, self.result)),
                str(running),
            )
        rprint(threads, file=outfile)

        rprint(
            f"🥇 [bold]Top {self.num_largest} functions (by innermost frame):[/]",
            file=outfile,
        )
        for name, count in self._get_top_functions():
            percent = format_percent(percent_of_samples(count, self.result))
            rprint(f"\t- {escape(name)} -> {count} ({percent})", file=outfile)

    def _render_to_json(self, out_path: Path) -> None:
        data: Dict[str, Any] = {
            "total_samples": self.result.total_samples,
            "threads": [
                {"thread_id": thread_id, "samples": samples, "running": running}
                for thread_id, samples, running in self._get_thread_rows()
            ],
            "top_functions": [
                {"function": name, "samples": count}
                for name, count in self._get_top_functions()
            ],
        }

        with open(out_path, "w") as f:
            json.dump(data, f, indent=2)

    def _get_thread_rows(self) -> Iterator[Tuple[int, int, int]]:
        for thread_id in list_thread_ids(self.result):
            trees = self.result.threads[thread_id]
            yield (thread_id, trees.samples, trees.running_samples)

    def _get_top_functions(self) -> List[Tuple[str, int]]:
        # Children of the bottom-up root are the innermost frames
        counts: Dict[str, int] = Counter()
        for trees in self.result.threads.values():
            for name, node in trees.bottom_up.children.items():
                counts[name] += node.count
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[
            : self.num_largest
        ]
