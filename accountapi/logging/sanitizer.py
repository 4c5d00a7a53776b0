from __future__ import annotations

import re

# Server-supplied text ends up in terminals and log files.
_ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_text(text: str) -> str:
    without_escapes = _ANSI_ESCAPE_PATTERN.sub("", text)
    return _CONTROL_PATTERN.sub("", without_escapes)
