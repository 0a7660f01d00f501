"""
Bot-noise filtering for gameplay events.
"""

from dataclasses import dataclass, field
from typing import Iterable

from etlp.core.config import FilterSettings
from etlp.core.models import ClassifiedEvent

__all__ = ["BotPredicate", "GameplayEventFilter", "COMBAT_SUBTYPES", "matches_exclusion"]


# Subtypes with two participants; one human on either side keeps the event
COMBAT_SUBTYPES = frozenset({"kill", "death", "suicide", "teamkill"})


@dataclass(frozen=True)
class BotPredicate:
    """
    Decide whether a participant name belongs to a bot.

    A name is a bot when it contains one of the marker tokens or equals
    the world actor (the pseudo-player for environmental deaths).
    """
    markers: tuple[str, ...] = ("[BOT]",)
    world_actor: str = "<world>"

    @classmethod
    def from_settings(cls, settings: FilterSettings) -> "BotPredicate":
        return cls(markers=tuple(settings.bot_markers), world_actor=settings.world_actor)

    def __call__(self, name: str | None) -> bool:
        return self.is_bot(name)

    def is_bot(self, name: str | None) -> bool:
        if not name:
            return False
        if name == self.world_actor:
            return True
        return any(marker in name for marker in self.markers)


def matches_exclusion(event: ClassifiedEvent, exclude_name: str | None) -> bool:
    """Check whether ``exclude_name`` occurs in the event's player name or raw text."""
    if not exclude_name:
        return False
    needle = exclude_name.lower()
    if event.player_name and needle in event.player_name.lower():
        return True
    return needle in event.raw.lower()


@dataclass
class GameplayEventFilter:
    """
    Drop gameplay events that involve no human.

    Combat events (kill, death, suicide, teamkill) survive when the
    attacker or the target is human; every other subtype survives when its
    primary actor is. A participant whose name could not be extracted is
    not treated as a bot.

    Usage:
        gameplay_filter = GameplayEventFilter(exclude_name="ETMan")
        visible = gameplay_filter.apply(events)
    """
    is_bot: BotPredicate = field(default_factory=BotPredicate)
    exclude_name: str | None = None

    def involves_human(self, event: ClassifiedEvent) -> bool:
        if (event.event_subtype or "") in COMBAT_SUBTYPES:
            return not self.is_bot(event.player_name) or not self.is_bot(event.target)
        return not self.is_bot(event.player_name)

    def keep(self, event: ClassifiedEvent) -> bool:
        """Exclusion first, then the bot test."""
        if matches_exclusion(event, self.exclude_name):
            return False
        return self.involves_human(event)

    def apply(self, events: Iterable[ClassifiedEvent]) -> list[ClassifiedEvent]:
        return [event for event in events if self.keep(event)]
