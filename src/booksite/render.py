"""
=============================================================================
TEMPLATE RENDERING
=============================================================================

Pages are rendered with Jinja2 from templates_dir:

    ┌─────────────────────┬──────────────────────────────────────────────┐
    │ index.html          │ /index.html            (required, fatal)     │
    │ index_grid.html     │ /index-grid.html                             │
    │ 404.html            │ /404.html              (required, fatal)     │
    │ about.html          │ /about.html                                  │
    │ feedback.html       │ /feedback.html                               │
    │ book_index.html     │ /essential/<book>/index.html                 │
    │ book_404.html       │ /essential/<book>/404.html                   │
    │ overview.html       │ /essential/<book>/overview.html              │
    │ page.html           │ every chapter / article page                 │
    └─────────────────────┴──────────────────────────────────────────────┘

A missing template is a configuration error caught at startup by
require(). A template that fails while rendering raises RenderError,
fatal only for the required top-level pages.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Union

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound, select_autoescape

from .books.model import slugify
from .errors import ConfigError, RenderError
from .handlers.base import ContentWriter, Producer


logger = logging.getLogger(__name__)


HTML_CONTENT_TYPE = "text/html; charset=utf-8"

REQUIRED_TEMPLATES = (
    "index.html",
    "index_grid.html",
    "404.html",
    "about.html",
    "feedback.html",
    "book_index.html",
    "book_404.html",
    "overview.html",
    "page.html",
)

# Rendering failures of these abort the run
FATAL_TEMPLATES = ("index.html", "404.html")


class TemplateRenderer:
    """
    Jinja2 environment bound to one template directory.

    Args:
        templates_dir: Directory holding the templates above.
        auto_reload: Re-read templates that changed on disk (preview).
    """

    def __init__(self, templates_dir: Union[str, Path], auto_reload: bool = False):
        self.templates_dir = Path(templates_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html"]),
            auto_reload=auto_reload,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["slugify"] = slugify

    def require(self, names: Iterable[str] = REQUIRED_TEMPLATES) -> None:
        """
        Load every named template once.

        Raises:
            ConfigError: A template is missing or does not compile.
        """
        for name in names:
            try:
                self.env.get_template(name)
            except TemplateNotFound:
                raise ConfigError(f"Required template {name} not found in {self.templates_dir}")
            except TemplateError as e:
                raise ConfigError(f"Template {name} is invalid: {e}")

    def render(self, name: str, data: Dict[str, Any]) -> bytes:
        """
        Render ``name`` with ``data`` to UTF-8 bytes.

        Raises:
            RenderError: Template missing or failed while rendering.
        """
        try:
            template = self.env.get_template(name)
            return template.render(**data).encode("utf-8")
        except TemplateError as e:
            raise RenderError(
                f"Rendering {name} failed: {e}",
                template=name,
                fatal=name in FATAL_TEMPLATES,
            )


def template_producer(
    renderer: TemplateRenderer,
    name: str,
    data: Callable[[], Dict[str, Any]],
) -> Producer:
    """
    Producer rendering ``name`` on every call.

    ``data`` is called at production time so the output reflects the
    state of the books at that moment.
    """

    def producer(writer: ContentWriter, request=None) -> None:
        body = renderer.render(name, data())
        writer.set_content_type(HTML_CONTENT_TYPE)
        writer.write(body)

    return producer
