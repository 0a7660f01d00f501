"""
Rule-table classifier for ET:Legacy console lines.
"""

import logging
from typing import Iterable, Iterator, Sequence

from etlp.core.models import Category, ClassifiedEvent, RawLine
from etlp.core.security import MAX_LINE_LENGTH, clip_line
from etlp.parsers.rules import (
    DEFAULT_RULES,
    ClassificationRule,
    normalize_text,
)

__all__ = ["LineClassifier"]

logger = logging.getLogger(__name__)

EVENT_FIELDS = ("player_name", "target", "event_subtype", "weapon", "slot")


class LineClassifier:
    """
    Assign a category and extracted fields to console lines.

    The classifier is a pure function of the line: no clock, no state, no
    I/O. It never raises; a line no rule matches is ``other``, and a rule
    whose extractor cannot find a field leaves it unset.

    Usage:
        classifier = LineClassifier()
        event = classifier.classify(RawLine("Dec 20 04:15:10", "ClientConnect: 3"))
        event.category  # Category.CONNECTION
    """

    name = "et_console"

    def __init__(
        self,
        rules: Sequence[ClassificationRule] | None = None,
        max_line_length: int = MAX_LINE_LENGTH,
    ):
        """
        Initialize the classifier.

        Args:
            rules: Ordered rule table; defaults to the built-in ET:Legacy rules
            max_line_length: Lines are clipped to this length before matching
        """
        self.rules: tuple[ClassificationRule, ...] = tuple(rules if rules is not None else DEFAULT_RULES)
        self.max_line_length = max_line_length

    def match_rule(self, text: str) -> ClassificationRule | None:
        """Return the first rule matching ``text``, or None."""
        lower = normalize_text(text).lower()
        for rule in self.rules:
            if rule.predicate(lower):
                return rule
        return None

    def classify(self, line: RawLine) -> ClassifiedEvent:
        """
        Classify one console line.

        Args:
            line: Raw line with its server timestamp

        Returns:
            ClassifiedEvent; ``raw`` is the line text as received
        """
        text = normalize_text(clip_line(line.text, self.max_line_length))
        lower = text.lower()

        for rule in self.rules:
            if rule.predicate(lower):
                return self._build_event(line, text, rule)

        return ClassifiedEvent(timestamp=line.timestamp, category=Category.OTHER, raw=line.text)

    def classify_text(self, timestamp: str, text: str) -> ClassifiedEvent:
        """Convenience wrapper for callers holding a bare stamp and text."""
        return self.classify(RawLine(timestamp=timestamp, text=text))

    def classify_stream(self, lines: Iterable[RawLine]) -> Iterator[ClassifiedEvent]:
        """
        Classify a stream of lines lazily.

        Blank lines are skipped.
        """
        for line in lines:
            if line.text.strip():
                yield self.classify(line)

    def _build_event(self, line: RawLine, text: str, rule: ClassificationRule) -> ClassifiedEvent:
        event = ClassifiedEvent(
            timestamp=line.timestamp,
            category=rule.category,
            raw=line.text,
            event_subtype=rule.subtype,
        )
        if rule.extractor is None:
            return event

        try:
            fields = rule.extractor(text)
        except (ValueError, IndexError, KeyError, AttributeError) as e:
            # Field extraction is best effort; the category stands
            logger.debug("Extractor %s failed on %r: %s", rule.name, text[:80], e)
            return event

        for key in EVENT_FIELDS:
            value = fields.get(key)
            if value is not None:
                setattr(event, key, value)
        if fields.get("details"):
            event.details.update(fields["details"])
        return event
