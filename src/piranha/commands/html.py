from ..reporters.html import HTMLReporter
from .common import ReportCommand


class HtmlCommand(ReportCommand):
    """Generate an HTML page with the call trees of every thread"""

    def __init__(self) -> None:
        super().__init__(
            reporter_factory=HTMLReporter.from_result,
            reporter_name="html",
        )
