"""Prompt templates for example generation and translation."""
from __future__ import annotations

EXAMPLES_SYSTEM_PROMPT = """\
You are a Swedish language teacher helping students learn Swedish. Generate \
simple, practical example sentences that demonstrate how to use Swedish words \
in everyday contexts. Each example should be at A2-B1 level (beginner to \
intermediate).\
"""

EXAMPLES_PROMPT = """\
Generate {count} example sentences using the Swedish word "{word}" \
(which means "{translation}" in English). For each example, provide:
1. The Swedish sentence
2. The English translation
{existing_section}
Format your response as a JSON array with objects containing "swedish" and \
"english" properties. Example format:
[{{"swedish": "...", "english": "..."}}, {{"swedish": "...", "english": "..."}}]

Make the sentences natural, practical, and at beginner-intermediate level.
"""

TRANSLATE_PROMPT = """\
Translate the following {source} text into {target}. If it is a single word, \
give its most common dictionary meaning. Reply with the translation only, no \
quotes and no explanation.

{text}
"""

LANGUAGE_NAMES = {
    "sv": "Swedish",
    "en": "English",
}


def format_existing(existing: list[dict]) -> str:
    if not existing:
        return ""
    lines = ["", "The student has already seen these examples. Do NOT repeat them:"]
    for e in existing:
        lines.append(f"- {e.get('swedish', '')} ({e.get('english', '')})")
    lines.append("")
    return "\n".join(lines)


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)
