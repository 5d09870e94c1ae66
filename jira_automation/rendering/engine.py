"""Secure Jinja2 template rendering engine.

Renders the agent instruction payload, the merge request description and
the Jira comments from the package ``templates/`` directory.

Security Features:
    - Sandboxed environment prevents arbitrary code execution from task
      content (summaries and descriptions are user-controlled)
    - StrictUndefined catches missing variables early (fail-fast)
    - Template path validation prevents directory traversal

Example:
    >>> from jira_automation.rendering.engine import SecureTemplateEngine
    >>> engine = SecureTemplateEngine()
    >>> body = engine.render("merge_request.md.j2", {"task": task, "jira_url": url})
"""

from pathlib import Path
from typing import Any

from jinja2 import FileSystemLoader, StrictUndefined, TemplateNotFound
from jinja2.sandbox import SandboxedEnvironment

from jira_automation.exceptions import ConfigurationError


class SecureTemplateEngine:
    """Secure Jinja2 template rendering engine with hardened configuration.

    Attributes:
        template_dir: Resolved path to the template directory.
        env: The SandboxedEnvironment instance.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        """Initialize secure template engine.

        Args:
            template_dir: Root directory for templates. If None, uses the
                package's built-in templates directory.

        Raises:
            ConfigurationError: If template_dir doesn't exist or isn't a directory.
        """
        if template_dir is None:
            template_dir = Path(__file__).parent.parent / "templates"

        self.template_dir = template_dir.resolve()

        if not self.template_dir.is_dir():
            raise ConfigurationError(f"Template directory does not exist: {self.template_dir}")

        self.env = SandboxedEnvironment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            autoescape=False,  # Markdown output, no HTML escaping
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["upper_or"] = _upper_or
        self.env.globals["none"] = None

    def validate_template_path(self, template_path: str) -> Path:
        """Validate template path to prevent directory traversal attacks.

        Raises:
            ValueError: If path escapes template directory.
            TemplateNotFound: If the template file doesn't exist.
        """
        requested_path = (self.template_dir / template_path).resolve()

        try:
            requested_path.relative_to(self.template_dir)
        except ValueError as e:
            raise ValueError(f"Template path escapes template directory: {template_path}") from e

        if not requested_path.exists():
            raise TemplateNotFound(template_path)

        return requested_path

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a template with the given context.

        Args:
            template_path: Path relative to template_dir (e.g. "task_prompt.md.j2")
            context: Variables passed to the template

        Returns:
            Rendered text
        """
        self.validate_template_path(template_path)
        template = self.env.get_template(template_path)
        return template.render(**context)


def _upper_or(value: Any, default: str = "UNKNOWN") -> str:
    """Upper-case a value, falling back to ``default`` when empty."""
    return str(value).upper() if value else default
