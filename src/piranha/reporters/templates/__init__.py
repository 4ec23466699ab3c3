"""Templates to render reports in HTML."""
from functools import lru_cache
from typing import Any
from typing import Dict
from typing import List

import jinja2


@lru_cache(maxsize=1)
def get_render_environment() -> jinja2.Environment:
    loader = jinja2.PackageLoader("piranha.reporters")
    env = jinja2.Environment(loader=loader, autoescape=jinja2.select_autoescape())
    return env


def get_report_title(*, kind: str, trace_name: str) -> str:
    return f"{trace_name} - {kind} report" if trace_name else f"{kind} report"


def render_report(
    *,
    kind: str,
    data: List[Dict[str, Any]],
    total_samples: int,
    trace_name: str = "",
) -> str:
    env = get_render_environment()
    template = env.get_template(kind + ".html")

    pretty_kind = kind.replace("_", " ")
    title = get_report_title(kind=pretty_kind, trace_name=trace_name)
    return template.render(
        kind=pretty_kind,
        title=title,
        data=data,
        total_samples=total_samples,
    )
