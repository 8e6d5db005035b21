"""Template variables in agent messages.

Placeholders look like ``{{name}}``; whitespace around the name is ignored
(``{{ name }}`` works too). They may appear in any string of the message
tree: system content, text parts, file data, and provider options.
Substitution is best-effort: a placeholder without a value is left as-is.
"""

import re
from typing import Any

from agent0.models.messages import Message, dump_messages, parse_messages

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)\}\}")


def apply_variables(text: str, variables: dict[str, str]) -> str:
    """Replace every placeholder in a string whose name has a value."""

    def _replace(match: re.Match) -> str:
        name = match.group(1).strip()
        if name in variables:
            return variables[name]
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def _substitute_leaves(node: Any, variables: dict[str, str]) -> Any:
    if isinstance(node, str):
        return apply_variables(node, variables)
    if isinstance(node, list):
        return [_substitute_leaves(item, variables) for item in node]
    if isinstance(node, dict):
        # keys are structure (role, type, ...), only values are template text
        return {key: _substitute_leaves(value, variables) for key, value in node.items()}
    return node


def substitute(messages: list[Message], variables: dict[str, str] | None) -> list[Message]:
    """Substitute variables into every string leaf of a message tree.

    Part counts and part types are preserved; only string values change.
    Returns new messages, the input is left untouched.
    """
    raw = dump_messages(messages)
    if variables:
        raw = _substitute_leaves(raw, variables)
    return parse_messages(raw)


def extract_variables(messages: list[Message]) -> list[str]:
    """Names of all placeholders in a message tree, in order of first appearance."""
    found: dict[str, None] = {}

    def _visit(node: Any) -> None:
        if isinstance(node, str):
            for match in PLACEHOLDER_PATTERN.finditer(node):
                found.setdefault(match.group(1).strip(), None)
        elif isinstance(node, list):
            for item in node:
                _visit(item)
        elif isinstance(node, dict):
            for value in node.values():
                _visit(value)

    _visit(dump_messages(messages))
    return list(found)
