"""
subline.llm.templates - Prompt template loading and rendering.

Uses Jinja2 to render the correction prompts. Packaged templates live in
subline/prompts/; a prompts_dir in the config overrides them file by file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, Template, TemplateNotFound

PACKAGE_PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

CORRECTION_SYSTEM_TEMPLATE = "correction_system.txt"
CORRECTION_USER_TEMPLATE = "correction_user.txt"


class PromptTemplateManager:
    """Manages loading and rendering of prompt templates."""

    def __init__(self, prompts_dir: Path | None = None) -> None:
        self.prompts_dir = prompts_dir
        search_dirs = [PACKAGE_PROMPTS_DIR]
        if prompts_dir is not None:
            search_dirs.insert(0, prompts_dir)
        self.env = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(d)) for d in search_dirs]),
            autoescape=False,
            keep_trailing_newline=False,
        )
        self._cache: dict[str, Template] = {}

    def get_template(self, name: str) -> Template:
        """Load a template by name.

        Raises:
            FileNotFoundError: If template doesn't exist
        """
        if name not in self._cache:
            try:
                self._cache[name] = self.env.get_template(name)
            except TemplateNotFound as e:
                raise FileNotFoundError(f"Template not found: {name}") from e
        return self._cache[name]

    def render(self, template_name: str, variables: dict[str, Any]) -> str:
        """Render a template with variables."""
        template = self.get_template(template_name)
        return template.render(**variables).strip()

    def correction_messages(
        self,
        payload_json: str,
        language: str | None = None,
    ) -> list[dict[str, str]]:
        """Build the chat messages for the correction model."""
        variables = {"language": language}
        return [
            {"role": "system", "content": self.render(CORRECTION_SYSTEM_TEMPLATE, variables)},
            {"role": "user", "content": self.render(CORRECTION_USER_TEMPLATE, variables)},
            {"role": "user", "content": payload_json},
        ]
