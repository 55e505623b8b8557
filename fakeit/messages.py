"""
Commit message corpora and plan population.
"""

import logging
import random
import re
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from .distributions import Plan
from .errors import GenerationError
from .rng import SeededRandom, code_units

logger = logging.getLogger(__name__)

MESSAGE_STYLES = ["default", "lorem", "emoji"]
MAX_MESSAGE_LENGTH = 100

DEFAULT_MESSAGES = [
    "Fix bug",
    "Add feature",
    "Update documentation",
    "Refactor code",
    "Improve performance",
    "Add tests",
    "Fix typo",
    "Update dependencies",
    "Add configuration",
    "Improve error handling",
    "Optimize function",
    "Add validation",
    "Fix security issue",
    "Update README",
    "Add example",
    "Clean up code",
    "Fix formatting",
    "Add logging",
    "Update version",
    "Improve UI",
]

LOREM_MESSAGES = [
    "Lorem ipsum dolor sit amet",
    "Consectetur adipiscing elit",
    "Sed do eiusmod tempor incididunt",
    "Ut labore et dolore magna aliqua",
    "Ut enim ad minim veniam",
    "Quis nostrud exercitation ullamco",
    "Laboris nisi ut aliquip ex ea",
    "Commodo consequat duis aute irure",
    "Dolor in reprehenderit in voluptate",
    "Velit esse cillum dolore eu fugiat",
    "Nulla pariatur excepteur sint occaecat",
    "Cupidatat non proident sunt in culpa",
    "Qui officia deserunt mollit anim",
    "Id est laborum sed ut perspiciatis",
    "Unde omnis iste natus error sit",
    "Voluptatem accusantium doloremque laudantium",
    "Totam rem aperiam eaque ipsa quae",
    "Ab illo inventore veritatis et quasi",
    "Architecto beatae vitae dicta sunt",
    "Explicabo nemo enim ipsam voluptatem",
]

EMOJI_MESSAGES = [
    "🐛 Fix bug",
    "✨ Add new feature",
    "📝 Update documentation",
    "♻️ Refactor code",
    "⚡ Improve performance",
    "✅ Add tests",
    "🎨 Improve code structure",
    "🔧 Add configuration file",
    "🚀 Deploy to production",
    "🔒 Fix security issues",
    "📦 Update dependencies",
    "🎉 Initial commit",
    "💄 Update UI and style files",
    "🚨 Fix compiler warnings",
    "🔀 Merge branches",
    "📱 Work on responsive design",
    "♿ Improve accessibility",
    "🔍 Improve SEO",
    "💡 Add comments",
    "🔥 Remove dead code",
    "🚧 Work in progress",
    "💥 Introduce breaking changes",
    "🍱 Add or update assets",
    "🗃️ Refactor database queries",
    "🔐 Add authentication",
    "🌐 Internationalization and localization",
    "💫 Add animations and transitions",
    "🎯 Improve focus and targeting",
    "⚙️ Configuration changes",
    "🏗️ Make architectural changes",
]

_CORPORA: Dict[str, List[str]] = {
    "default": DEFAULT_MESSAGES,
    "lorem": LOREM_MESSAGES,
    "emoji": EMOJI_MESSAGES,
}


def messages_for_style(
    style: str, custom_messages: Optional[List[str]] = None
) -> List[str]:
    """Return the corpus for a style; custom messages replace the default one."""
    if style not in _CORPORA:
        raise GenerationError(
            f"Unknown message style: {style}. Use one of: {', '.join(MESSAGE_STYLES)}"
        )
    if style == "default" and custom_messages:
        return custom_messages
    return _CORPORA[style]


MESSAGE_SALT = 16777619


def message_seed_state(seed: str) -> int:
    """31-bit rolling hash of a slot seed, salted to spread similar seeds."""
    h = 0
    for unit in code_units(seed):
        h = (h * 31 + unit) & 0x7FFFFFFF
    # The salt product is taken at double precision before masking
    return int(float(h * MESSAGE_SALT)) & 0x7FFFFFFF


def _slot_random(seed: str) -> SeededRandom:
    return SeededRandom(state=message_seed_state(seed))


def pick_message(
    style: str,
    custom_messages: Optional[List[str]] = None,
    seed: Optional[str] = None,
) -> str:
    """Pick one message, deterministically when a seed is given."""
    messages = messages_for_style(style, custom_messages)
    if not messages:
        raise GenerationError("No messages available for generation")

    if seed:
        index = int(_slot_random(seed).next_float() * len(messages))
        return messages[index]
    return random.choice(messages)


def populate_messages(
    plan: Plan,
    style: str,
    custom_messages: Optional[List[str]] = None,
    seed: Optional[str] = None,
) -> Plan:
    """Return a copy of the plan with one message per planned commit."""
    populated = []

    for day in plan:
        messages = []
        for slot in range(day.count):
            slot_seed = f"{seed}-{day.date.isoformat()}-{slot}" if seed else None
            try:
                messages.append(pick_message(style, custom_messages, slot_seed))
            except Exception as e:
                fallback = f"Update {slot + 1}"
                logger.warning(
                    "Failed to generate message for %s: %s. Using fallback: %r",
                    day.date.isoformat(),
                    e,
                    fallback,
                )
                messages.append(fallback)

        populated.append(replace(day, messages=messages))

    return populated


def load_messages_from_file(path: Path) -> List[str]:
    """Load one message per non-blank line, sanitized."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise GenerationError(f"Failed to load messages from {path}: {e}") from e
    return sanitize_messages(content.splitlines())


def validate_custom_messages(messages: List[str]) -> List[str]:
    """Return a list of problems with a custom corpus (empty when valid)."""
    errors = []

    if not messages:
        return ["Messages list cannot be empty"]

    for i, message in enumerate(messages):
        if not isinstance(message, str):
            errors.append(f"Message at index {i} must be a string")
            continue

        trimmed = message.strip()
        if not trimmed:
            errors.append(f"Message at index {i} cannot be empty or whitespace only")
        elif len(trimmed) > MAX_MESSAGE_LENGTH:
            errors.append(
                f"Message at index {i} is too long (max {MAX_MESSAGE_LENGTH} characters): "
                f'"{trimmed[:50]}..."'
            )
        elif "\n" in trimmed or "\r" in trimmed:
            errors.append(f'Message at index {i} contains line breaks: "{trimmed}"')
        elif message != trimmed:
            errors.append(
                f'Message at index {i} has leading or trailing spaces: "{message}"'
            )

    return errors


def sanitize_message(message: str) -> str:
    """Collapse whitespace and truncate to the maximum message length."""
    return re.sub(r"\s+", " ", message.strip())[:MAX_MESSAGE_LENGTH]


def sanitize_messages(messages: List[str]) -> List[str]:
    return [m for m in (sanitize_message(m) for m in messages) if m]


def message_stats(style: str, custom_messages: Optional[List[str]] = None) -> dict:
    """Describe the corpus used for a style."""
    messages = messages_for_style(style, custom_messages)
    return {
        "style": style,
        "total_messages": len(messages),
        "sample_messages": messages[:5],
    }
