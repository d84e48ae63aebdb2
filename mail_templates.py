"""Notification e-mail bodies, rendered from ``templates/`` with Jinja2."""

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, select_autoescape

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@lru_cache(maxsize=1)
def _get_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["fecha"] = lambda value: value.strftime("%d-%m-%Y") if value else ""
    return env


def render(template_name: str, tz: str = "America/Santiago", **context) -> str:
    now = datetime.now(ZoneInfo(tz))
    return _get_env().get_template(template_name).render(now=now, year=now.year, **context)
