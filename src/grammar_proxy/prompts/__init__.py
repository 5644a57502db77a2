"""Packaged system prompts."""

from grammar_proxy.prompts.prompt import PromptTemplate, load_system_prompt

__all__ = ["PromptTemplate", "load_system_prompt"]
