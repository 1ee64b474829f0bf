from datetime import datetime
from pathlib import Path

from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def fmt_datetime(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


class PageRenderer:
    """Renders the HTML pages. Autoescaping covers every interpolated value."""

    def __init__(self, base_url: str, templates_dir: Path = TEMPLATES_DIR):
        self.base_url = base_url
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["datetime"] = fmt_datetime

    def image_url(self, image_id: str) -> str:
        return f"{self.base_url}/i/{image_id}"

    def view_url(self, image_id: str) -> str:
        return f"{self.base_url}/view/{image_id}"

    def render(self, name: str, status_code: int = 200, **ctx) -> HTMLResponse:
        template = self.env.get_template(name)
        ctx.setdefault("base_url", self.base_url)
        return HTMLResponse(template.render(**ctx), status_code=status_code)
