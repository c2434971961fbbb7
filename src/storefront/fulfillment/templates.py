"""Command template rendering.

Templates use `{placeholder}` markers. Recognized placeholders are replaced;
anything else in braces is left exactly as written, so a command that fails
on the game server still shows the operator what the template said.
"""

import re

PLACEHOLDERS = ("username", "package_name", "quantity", "order_id", "order_number")

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def render_command(template: str, context: dict) -> str:
    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        value = context.get(name)
        if name not in PLACEHOLDERS or value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(_substitute, template).strip()


def unresolved_placeholders(command: str) -> list[str]:
    return _PLACEHOLDER.findall(command)
