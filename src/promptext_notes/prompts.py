"""Prompt templates for the polish stage."""

from __future__ import annotations

import re

_PLACEHOLDER_RE = re.compile(r"\{(changelog|diff)\}")

DEFAULT_POLISH_PROMPT = """Polish this changelog entry. The diff is provided for verification only.

CHANGELOG:
{changelog}

DIFF (for verification):
{diff}

Rules:
1. Keep EXACTLY the same number of items - do NOT add or remove any
2. Only reword the existing text
3. Avoid "we", "we've", "our"
4. Use active voice: "Updated X", "Fixed Y"
5. Keep it concise

Output only the polished changelog with the SAME items."""


def build_polish_prompt(draft: str, diff: str = "", template: str | None = None) -> str:
    """Embeds the discovery draft (and diff) into the polish template.

    Custom templates use ``{changelog}`` and ``{diff}`` placeholders; other
    braces are left untouched. A template without ``{changelog}`` gets the
    draft appended so it always reaches the model.
    """
    text = template or DEFAULT_POLISH_PROMPT
    if "{changelog}" not in text:
        text = f"{text.rstrip()}\n\nCHANGELOG:\n{{changelog}}"
    values = {"changelog": draft, "diff": diff}
    return _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], text)
