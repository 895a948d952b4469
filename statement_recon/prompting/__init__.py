"""Prompt template helpers."""

from statement_recon.prompting.template import (
    PromptTemplateError,
    fill_prompt_template,
    leftover_placeholders,
    prompt_hash,
)

__all__ = [
    "PromptTemplateError",
    "fill_prompt_template",
    "leftover_placeholders",
    "prompt_hash",
]
