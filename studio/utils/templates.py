"""
Prompt template helpers.

Templates use `{name}` placeholders. Unknown names render as an empty
string so an admin-edited template never fails on a typo.
"""
import re
from typing import Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def apply_placeholders(template: str, context: Optional[Mapping[str, Optional[str]]]) -> str:
    """Substitute every `{name}` token in template from context."""
    values = context or {}

    def _replace(match: re.Match) -> str:
        value = values.get(match.group(1))
        return value if isinstance(value, str) else ""

    return PLACEHOLDER_PATTERN.sub(_replace, template or "")


def placeholder_names(template: str) -> list:
    """Names referenced by template, in order of first appearance."""
    seen = []
    for name in PLACEHOLDER_PATTERN.findall(template or ""):
        if name not in seen:
            seen.append(name)
    return seen
