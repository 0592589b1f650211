"""Hints about side effects the handler probably performs.

Scans handler source for imports of well-known side-effecting SDKs and
suggests the matching ``ctx.effect(...)`` declaration, so that the replay can
actually see those effects.
"""

import re
from typing import NamedTuple


class EffectHint(NamedTuple):
    """What a library does per call and how to declare it."""

    noun: str
    snippet: str


KNOWN_EFFECTS: dict[str, EffectHint] = {
    "stripe": EffectHint("charge", 'ctx.effect(f"stripe.charge:{payload[\'id\']}")'),
    "boto3": EffectHint("call", 'ctx.effect(f"aws.write:{payload[\'id\']}")'),
    "requests": EffectHint("call", 'ctx.effect(f"http.post:{payload[\'id\']}")'),
    "httpx": EffectHint("call", 'ctx.effect(f"http.post:{payload[\'id\']}")'),
    "smtplib": EffectHint("email", 'ctx.effect(f"email.send:{payload[\'id\']}")'),
    "sendgrid": EffectHint("email", 'ctx.effect(f"email.send:{payload[\'id\']}")'),
    "twilio": EffectHint("message", 'ctx.effect(f"sms.send:{payload[\'id\']}")'),
}

_IMPORT_RE = re.compile(r"^\s*(?:from|import)\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)


def suggest_hints(source_text: str) -> list[str]:
    """Return one hint per detected side-effecting library.

    Args:
        source_text: Handler source code

    Returns:
        Hint lines in order of first import

    Examples:
        >>> len(suggest_hints("import stripe\\nimport json\\n"))
        1
    """
    hints: list[str] = []
    seen: set[str] = set()
    for match in _IMPORT_RE.finditer(source_text):
        library = match.group(1)
        hint = KNOWN_EFFECTS.get(library)
        if hint is None or library in seen:
            continue
        seen.add(library)
        hints.append(f"{library} detected: declare each {hint.noun} with {hint.snippet}")
    return hints
