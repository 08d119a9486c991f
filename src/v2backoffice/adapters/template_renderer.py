"""ABOUTME: Template rendering adapters for decoupling the service layer from Flask.
ABOUTME: Renders the packaged email and invoice templates with Jinja2, no app context needed."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


class TemplateRenderer(ABC):
    """Abstract interface for rendering templates."""

    @abstractmethod
    def render_template(self, template_name: str, **context: Any) -> str:
        """
        Render a template with the given context.

        Args:
            template_name: Path to template file (e.g., "emails/password_reset.html")
            **context: Variables to pass to the template

        Returns:
            Rendered template as a string
        """
        raise NotImplementedError


class JinjaTemplateRenderer(TemplateRenderer):
    """Renders templates shipped inside the v2backoffice package.

    The Celery worker and the CLI have no Flask app, so this does not go
    through flask.render_template.
    """

    def __init__(self, environment: Environment | None = None) -> None:
        self.environment = environment or Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_template(self, template_name: str, **context: Any) -> str:
        return self.environment.get_template(template_name).render(**context)
