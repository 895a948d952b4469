"""
Prompt Template Filling

Extraction prompts are stored with ``{{ name }}`` placeholders and a list
of declared variable names. Before a prompt is sent, the statement's own
values (account id, txid prefix) are filled in.

Problems are collected, not raised one by one, so the reviewer sees every
issue with a template at once.
"""

import hashlib
import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")


class PromptTemplateError(ValueError):
    """The template could not be filled cleanly."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__(" | ".join(problems))


def _normalize_name(name: str) -> str:
    # Declared names are stored without braces, but legacy records have them
    return name.replace("{", "").replace("}", "").strip()


def fill_prompt_template(
    template: str,
    variables: Mapping[str, Any],
    required: Optional[Iterable[str]] = None,
) -> str:
    """
    Replace declared placeholders with their values.

    Args:
        template: Prompt text with ``{{ name }}`` placeholders.
        variables: Values by name.
        required: Declared variable names for this prompt.

    Returns:
        The filled prompt.

    Raises:
        PromptTemplateError: If the template uses undeclared placeholders,
            lacks a declared variable, or a value is missing or empty.
    """
    declared = list(dict.fromkeys(_normalize_name(name) for name in (required or [])))
    found: set[str] = set()
    unknown: list[str] = []
    missing_values: list[str] = []

    def substitute(match: re.Match) -> str:
        key = _normalize_name(match.group(1))
        found.add(key)

        if key not in declared:
            unknown.append(key)
            return match.group(0)

        value = variables.get(key)
        if value is None or value == "":
            missing_values.append(key)
            return match.group(0)

        return str(value)

    filled = PLACEHOLDER_PATTERN.sub(substitute, template)

    problems = []
    if unknown:
        problems.append(f"Unknown placeholders in template: {', '.join(unknown)}")
    missing_in_template = [name for name in declared if name not in found]
    if missing_in_template:
        problems.append(
            f"Template is missing required variables: {', '.join(missing_in_template)}"
        )
    if missing_values:
        problems.append(f"Missing values for: {', '.join(missing_values)}")
    if problems:
        raise PromptTemplateError(problems)

    return filled


def leftover_placeholders(text: str) -> list[str]:
    """Placeholders still present in a prompt, e.g. ['{{account_id}}']."""
    return [match.group(0) for match in PLACEHOLDER_PATTERN.finditer(text)]


def prompt_hash(text: str) -> str:
    """SHA-256 hex digest of a prompt, for run bookkeeping."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
