"""Split rendered template text into role-tagged chat messages.

Section markers sit on a line of their own:

    [ system ]            [ end system ]
    [ user ]              [ end user ]
    [ assistant ]         [ end assistant ]
    [ cache ]             [ end cache ]       (cache is sent as system)

Markers are case-insensitive and tolerate any inner whitespace. Text outside
any section is sent as system. Sections are never merged: each one becomes
its own message, in document order.
"""

import logging
import re
from typing import List, Literal, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]

SECTION_PATTERN = re.compile(r"^\s*\[\s*(system|user|assistant|cache)\s*\]\s*$", re.IGNORECASE)
END_SECTION_PATTERN = re.compile(r"^\s*\[\s*end\s+(system|user|assistant|cache)\s*\]\s*$", re.IGNORECASE)

ROLE_ALIASES = {"cache": "system"}


class ChatMessage(BaseModel):
    """One message of the conversation sent to the model."""

    role: Role
    content: str


def parse_sections(rendered: str) -> List[ChatMessage]:
    """Turn rendered text into an ordered list of chat messages.

    Args:
        rendered: Output of a render

    Returns:
        Messages in document order. Blank sections are dropped.

    Example:
        >>> parse_sections("[ system ]\\nA\\n[ end system ]\\n[ user ]\\nB\\n[ end user ]")
        [ChatMessage(role='system', content='A'), ChatMessage(role='user', content='B')]
    """
    messages: List[ChatMessage] = []
    role: Optional[str] = None
    buffer: List[str] = []

    def flush():
        if role is not None and buffer:
            content = "\n".join(buffer).strip()
            if content:
                messages.append(ChatMessage(role=role, content=content))

    for line in re.split(r"\r?\n", rendered):
        if match := SECTION_PATTERN.match(line):
            flush()
            buffer = []
            name = match.group(1).lower()
            role = ROLE_ALIASES.get(name, name)
            continue

        if END_SECTION_PATTERN.match(line):
            flush()
            buffer = []
            role = None
            continue

        if role is not None:
            buffer.append(line)
        elif line.strip():
            # text outside any section opens an implicit system section
            role = "system"
            buffer.append(line)

    flush()
    logger.debug(f"Parsed {len(messages)} messages: {[m.role for m in messages]}")
    return messages
