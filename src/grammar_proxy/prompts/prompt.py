from __future__ import annotations

from importlib import resources
from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class PromptTemplate(BaseModel):
    """Prompt definition loaded from YAML."""

    system: str = Field(..., min_length=1, description="System prompt content")


def load_system_prompt(name: str) -> PromptTemplate:
    """Load a packaged system prompt by name."""
    filename = name if name.endswith(".yaml") else f"{name}.yaml"
    base_path = resources.files("grammar_proxy.prompts")
    prompt_path = base_path.joinpath("system", filename)
    if not prompt_path.is_file():
        missing_path = Path("system") / filename
        error_message = f"Prompt template not found: {missing_path}"
        raise FileNotFoundError(error_message)

    content = prompt_path.read_text(encoding="utf-8")
    data = yaml.safe_load(content)
    if data is None:
        error_message = f"Prompt template is empty: {prompt_path}"
        raise ValueError(error_message)

    return PromptTemplate.model_validate(data)
