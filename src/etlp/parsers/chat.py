"""
Chat extraction for say:/sayteam: console lines.

Chat never goes through the rule table; this collaborator owns it.
"""

import re

from etlp.core.models import Category, ClassifiedEvent, RawLine
from etlp.core.security import MAX_LINE_LENGTH, clip_line
from etlp.parsers.rules import normalize_text, strip_colors

__all__ = ["ChatExtractor"]


class ChatExtractor:
    """
    Turn chat lines into ``chat`` events.

    Examples:
        say: Alice: gg
        sayteam: ^1Bob^7: need a medic
        say: "server restarting in 5"
    """

    name = "et_chat"

    PATTERN = re.compile(
        r'^\s*(?P<channel>say|sayteam):\s*(?:(?P<name>[^:]+?):\s+)?(?P<message>.*?)\s*$',
        re.IGNORECASE,
    )

    def is_chat(self, text: str) -> bool:
        return self.PATTERN.match(normalize_text(text)) is not None

    def extract(self, line: RawLine) -> ClassifiedEvent | None:
        """
        Extract speaker and message from a chat line.

        Returns:
            ClassifiedEvent with category ``chat``, or None for non-chat lines
        """
        text = normalize_text(clip_line(line.text, MAX_LINE_LENGTH))
        match = self.PATTERN.match(text)
        if not match:
            return None

        event = ClassifiedEvent(
            timestamp=line.timestamp,
            category=Category.CHAT,
            raw=line.text,
            event_subtype=match.group("channel").lower(),
            player_name=strip_colors(match.group("name")),
        )
        message = match.group("message").strip('"')
        if message:
            event.details["message"] = message
        return event
