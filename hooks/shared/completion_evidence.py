"""Completion-evidence classifier for subagent transcripts.

Stateless keyword matching: a subagent that says it is done must
also mention either a quality gate (typecheck, lint, tests) or some kind of
verification. Anything that cannot be read is treated as "no opinion".
"""

import json
import re

CLAIMS_COMPLETE_RE = re.compile(r"(task\s+complete|completed|done|finished|all\s+set|ready\s+for\s+review)")
MENTIONS_GATES_RE = re.compile(
    r"(typecheck|lint|unit\s+test|tests?\s+pass|bun\s+run\s+(typecheck|lint|test)|quality\s+gate)"
)
MENTIONS_VERIFICATION_RE = re.compile(r"(verified|verification|reproduced|validated|passes\s+ci|green)")


def _entry_text(entry):
    if not isinstance(entry, dict) or entry.get("type") != "assistant":
        return ""
    message = entry.get("message")
    contents = message.get("content") if isinstance(message, dict) else None
    if not isinstance(contents, list):
        return ""
    parts = [c["text"] for c in contents
             if isinstance(c, dict) and c.get("type") == "text" and c.get("text")]
    return "\n".join(parts)


def last_assistant_text(lines):
    """Lower-cased text of the last assistant entry with text content."""
    for line in reversed(list(lines)):
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        text = _entry_text(entry)
        if text:
            return text.lower()
    return ""


def read_last_assistant_text(transcript_path):
    with open(transcript_path, "r", encoding="utf-8") as fh:
        return last_assistant_text(fh.read().strip().split("\n"))


def lacks_evidence(text):
    """True when text claims completion without gate or verification evidence."""
    if not text or not CLAIMS_COMPLETE_RE.search(text):
        return False
    return not (MENTIONS_GATES_RE.search(text) or MENTIONS_VERIFICATION_RE.search(text))
