"""
Line-level parsers for ETLP: the rule-table classifier, the chat
extractor and the journal splitter.
"""

from etlp.parsers.rules import (
    ClassificationRule,
    DEFAULT_RULES,
    CHAT_PREFIXES,
    strip_colors,
    normalize_text,
    parse_infostring,
)
from etlp.parsers.classifier import LineClassifier
from etlp.parsers.chat import ChatExtractor
from etlp.parsers.journal import JournalLineSplitter

__all__ = [
    "ClassificationRule",
    "DEFAULT_RULES",
    "CHAT_PREFIXES",
    "strip_colors",
    "normalize_text",
    "parse_infostring",
    "LineClassifier",
    "ChatExtractor",
    "JournalLineSplitter",
]
