"""Keyword commands and intent-to-prompt classification.

Everything here is pure: no I/O, no state. Keywords are matched as
case-insensitive substrings and include the Thai equivalents users type.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from lineassist.webhook.models import FileKind


class Command(str, Enum):
    HELP = "help"
    STATUS = "status"


# Checked in order; "help" wins over "status" when both appear.
_COMMAND_KEYWORDS: tuple[tuple[Command, tuple[str, ...]], ...] = (
    (Command.HELP, ("help", "ช่วย")),
    (Command.STATUS, ("status", "สถานะ")),
)

TRANSLATE_PROMPT = (
    "Translate all text in this file to Thai. "
    "If the file contains several languages, translate all of them."
)
SUMMARIZE_PROMPT = "Summarize the key content of this file concisely and in plain language."
ANALYZE_PROMPT = "Analyze this file and explain its content in detail."
READ_IMAGE_PROMPT = "Read all text in this image (OCR) and lay it out so it is easy to read."
READ_FILE_PROMPT = "Read this file and show its entire content."
TRANSCRIBE_PROMPT = "Transcribe the speech in this audio and summarize what was said."
DATA_PROMPT = "Analyze the tables or data in this file and summarize the findings."
_FALLBACK_TEMPLATE = (
    'The user asked for the following: "{intent}"\n\n'
    "Process this file according to that request. If it cannot be done, "
    "explain why and suggest an alternative."
)

_CHAT_PERSONA = (
    "You are a friendly, kind AI assistant. Reply conversationally and naturally, "
    "not too formal, in Thai."
)

_FILE_KIND_LABELS = {
    FileKind.IMAGE: "image 🖼️",
    FileKind.VIDEO: "video 🎥",
    FileKind.AUDIO: "audio file 🎵",
    FileKind.DOCUMENT: "document 📄",
}

# Guessed from the message kind, not the content; see DESIGN.md.
_FILE_EXTENSIONS = {
    FileKind.IMAGE: ".jpg",
    FileKind.VIDEO: ".mp4",
    FileKind.AUDIO: ".m4a",
    FileKind.DOCUMENT: ".pdf",
}


@dataclass(frozen=True)
class IntentRule:
    """Maps intent keywords to a prompt, optionally limited to some file kinds."""

    name: str
    keywords: tuple[str, ...]
    prompt: Callable[[FileKind], str]
    kinds: frozenset[FileKind] | None = None

    def applies_to(self, kind: FileKind) -> bool:
        return self.kinds is None or kind in self.kinds

    def first_position(self, text: str) -> int | None:
        """Lowest index at which any keyword occurs in ``text`` (already lowercased)."""
        positions = [i for i in (text.find(k) for k in self.keywords) if i >= 0]
        return min(positions) if positions else None


def _read_prompt(kind: FileKind) -> str:
    return READ_IMAGE_PROMPT if kind is FileKind.IMAGE else READ_FILE_PROMPT


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule("translate", ("translate", "translation", "แปล"), lambda _: TRANSLATE_PROMPT),
    IntentRule(
        "summarize",
        ("summarize", "summarise", "summary", "สรุป"),
        lambda _: SUMMARIZE_PROMPT,
    ),
    IntentRule(
        "analyze",
        ("analyze", "analyse", "analysis", "วิเคราะห์"),
        lambda _: ANALYZE_PROMPT,
    ),
    IntentRule("read", ("read", "text", "ocr", "อ่าน", "ข้อความ"), _read_prompt),
    IntentRule(
        "transcribe",
        ("audio", "speech", "voice", "transcribe", "เสียง"),
        lambda _: TRANSCRIBE_PROMPT,
        kinds=frozenset({FileKind.AUDIO}),
    ),
    IntentRule("data", ("table", "data", "ตาราง", "ข้อมูล"), lambda _: DATA_PROMPT),
)


def match_command(text: str) -> Command | None:
    lowered = text.lower()
    for command, keywords in _COMMAND_KEYWORDS:
        if any(k in lowered for k in keywords):
            return command
    return None


def select_rule(intent_text: str, kind: FileKind) -> IntentRule | None:
    """Pick the rule whose keyword appears first in the text.

    Ties (several rules matching at the same index) go to the earlier rule in
    INTENT_RULES. Returns None when nothing matches.
    """
    lowered = intent_text.lower()
    best: tuple[int, int, IntentRule] | None = None
    for order, rule in enumerate(INTENT_RULES):
        if not rule.applies_to(kind):
            continue
        position = rule.first_position(lowered)
        if position is None:
            continue
        if best is None or (position, order) < best[:2]:
            best = (position, order, rule)
    return best[2] if best else None


def classify_intent(intent_text: str, kind: FileKind) -> str:
    """Turn the user's free-text instruction into a generation prompt."""
    rule = select_rule(intent_text, kind)
    if rule is None:
        return _FALLBACK_TEMPLATE.format(intent=intent_text.strip())
    return rule.prompt(kind)


def build_chat_prompt(text: str) -> str:
    return f"{_CHAT_PERSONA}\n\nQuestion: {text}"


def file_kind_label(kind: FileKind) -> str:
    return _FILE_KIND_LABELS.get(kind, "file")


def extension_for(kind: FileKind) -> str:
    return _FILE_EXTENSIONS.get(kind, ".bin")
