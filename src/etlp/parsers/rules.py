"""
Classification rules for ET:Legacy console lines.

Rules are evaluated in the order of ``DEFAULT_RULES``; the first rule
whose predicate matches decides the category and runs its extractor.
Predicates see the lowercased line, extractors see the original text.

Examples of lines handled here:
    Kill: 2 5 10: Alice killed Agent[BOT] by MOD_MP40
    ClientConnect: 3
    Userinfo: \\cg_etVersion\\ET Legacy v2.81.1\\name\\Alice\\ip\\203.0.113.7:27960
    ClientUserinfoChanged: 3 n\\Alice\\t\\1\\c\\0
    Redirecting client 'Alice' to http://dl.example.org/etmain/pak.pk3
    ClientDisconnect: 3
    GameEvent: teamkill \\player\\Alice\\target\\Bob\\weapon\\MOD_GRENADE
"""

import re
from dataclasses import dataclass
from typing import Any, Callable

from etlp.core.models import Category

__all__ = [
    "ClassificationRule",
    "DEFAULT_RULES",
    "CHAT_PREFIXES",
    "strip_colors",
    "normalize_text",
    "parse_infostring",
]


Extraction = dict[str, Any]


@dataclass(frozen=True)
class ClassificationRule:
    """
    One entry of the ordered classification table.

    Attributes:
        name: Rule identifier, used in tests and debug logging
        predicate: Called with the lowercased line
        category: Category assigned when the predicate matches
        extractor: Optional field extractor called with the original line
        subtype: Default event subtype when the extractor sets none
    """
    name: str
    predicate: Callable[[str], bool]
    category: Category
    extractor: Callable[[str], Extraction] | None = None
    subtype: str | None = None


# =============================================================================
# Text helpers
# =============================================================================

CHAT_PREFIXES = ("say:", "sayteam:")

COLOR_CODE = re.compile(r'\^[0-9a-zA-Z]')

# Optional level-time prefix written by the game module ("  3:45 Kill: ...")
LEVEL_TIME = re.compile(r'^\s*\d{1,4}:\d{2}\s+(?=\S)')

# Console print prefixes that wrap player announcements
PRINT_PREFIX = re.compile(r'^(?:(?:broadcast|chat|print|cpm):\s*|(?:print|cpm)\s+)+"?', re.IGNORECASE)


def strip_colors(value: str | None) -> str | None:
    """Remove ET colour codes (^1, ^7, ...) and surrounding whitespace."""
    if value is None:
        return None
    cleaned = COLOR_CODE.sub("", value).strip().strip('"').strip()
    return cleaned or None


def normalize_text(text: str) -> str:
    """Drop the level-time prefix and trailing whitespace from a line."""
    return LEVEL_TIME.sub("", text, count=1).rstrip()


def parse_infostring(info: str) -> dict[str, str]:
    """
    Parse an id Tech infostring ("\\key\\value\\key\\value").

    A missing leading backslash is tolerated; a dangling key is dropped.
    """
    info = info.strip()
    if info.startswith("\\"):
        info = info[1:]
    parts = info.split("\\")
    return {parts[i]: parts[i + 1] for i in range(0, len(parts) - 1, 2)}


def _slot_or_name(token: str) -> Extraction:
    token = token.strip()
    if token.isdigit():
        return {"slot": int(token)}
    name = strip_colors(token)
    return {"player_name": name} if name else {}


def _clean_weapon(weapon: str | None) -> str | None:
    if not weapon:
        return None
    weapon = weapon.strip().rstrip(".!")
    if weapon.upper().startswith("MOD_"):
        weapon = weapon[4:]
    return weapon or None


# =============================================================================
# Pre-classified game events
# =============================================================================

GAME_EVENT = re.compile(r'^GameEvent:\s*(?P<subtype>[A-Za-z_]+)\s*(?P<info>.*)$', re.IGNORECASE)

GAME_EVENT_DETAIL_KEYS = {
    "map": "map",
    "voice": "voice_command",
    "mode": "rocket_mode",
    "team": "team",
    "streak": "streak",
}


def _extract_game_event(text: str) -> Extraction:
    match = GAME_EVENT.match(text)
    if not match:
        return {}

    info = parse_infostring(match.group("info")) if match.group("info") else {}
    result: Extraction = {"event_subtype": match.group("subtype").lower()}

    if "player" in info:
        result["player_name"] = strip_colors(info["player"])
    if "target" in info:
        result["target"] = strip_colors(info["target"])
    if "weapon" in info:
        result["weapon"] = _clean_weapon(info["weapon"])
    if info.get("slot", "").isdigit():
        result["slot"] = int(info["slot"])

    details = {
        detail: info[key]
        for key, detail in GAME_EVENT_DETAIL_KEYS.items()
        if info.get(key)
    }
    if details:
        result["details"] = details
    return result


# =============================================================================
# Kills
# =============================================================================

KILL_LINE = re.compile(
    r'^Kill:\s*(?P<killer_slot>\d+)\s+(?P<victim_slot>\d+)\s+\d+:\s*'
    r'(?P<killer>.+?)\s+killed\s+(?P<victim>.+?)\s+by\s+(?P<weapon>\S+)\s*$',
    re.IGNORECASE,
)

WAS_KILLED = re.compile(
    r"^(?P<victim>.+?)\s+was\s+(?:killed|gibbed|headshot)\s+by\s+(?P<killer>.+?)"
    r"(?:'s\s+(?P<weapon>[^.!]+))?[.!]?\s*$",
    re.IGNORECASE,
)

X_KILLED_Y = re.compile(
    r'^(?P<killer>.+?)\s+killed\s+(?P<victim>.+?)(?:\s+(?:by|with)\s+(?P<weapon>\S+))?\s*$',
    re.IGNORECASE,
)

DAMAGE_AMOUNT = re.compile(r'\b\d+\s*dmg\b')


def _extract_kill(text: str) -> Extraction:
    body = PRINT_PREFIX.sub("", text)
    match = KILL_LINE.match(body) or WAS_KILLED.match(body) or X_KILLED_Y.match(body)
    if not match:
        return {"event_subtype": "kill"}

    killer = strip_colors(match.group("killer"))
    victim = strip_colors(match.group("victim"))
    result: Extraction = {
        "player_name": killer,
        "target": victim,
        "weapon": _clean_weapon(match.group("weapon")),
        "event_subtype": "suicide" if killer and killer == victim else "kill",
    }
    if "killer_slot" in match.groupdict() and match.group("killer_slot"):
        result["slot"] = int(match.group("killer_slot"))
    return result


def _is_kill(lower: str) -> bool:
    return (
        "killed" in lower
        or "headshot" in lower
        or "gibbed" in lower
        or DAMAGE_AMOUNT.search(lower) is not None
    )


# =============================================================================
# Connection lifecycle
# =============================================================================

CHECKSUM_MISMATCH = re.compile(r'nchksum1.*==', re.IGNORECASE)

USERINFO = re.compile(r'^Userinfo:\s*(?P<info>\\.*)$', re.IGNORECASE)

USERINFO_CHANGED = re.compile(
    r'^ClientUserinfoChanged:\s*(?P<slot>\d+)\s+(?P<info>.*)$', re.IGNORECASE
)

CLIENT_BEGIN = re.compile(r'^ClientBegin:\s*(?P<slot>\d+)', re.IGNORECASE)

CLIENT_CONNECT = re.compile(r'^ClientConnect:\s*(?P<who>.+?)\s*$', re.IGNORECASE)

REDIRECT = re.compile(r"Redirecting client '(?P<name>[^']+)'(?:\s+to\s+(?P<file>.+))?$")

ENTERED = re.compile(r'^(?P<name>.+?)\s+entered the game', re.IGNORECASE)

CONNECTED = re.compile(r'^(?P<name>.+?)\s+connected\b', re.IGNORECASE)

JOINED = re.compile(
    r'^(?P<name>.+?)\s+joined(?:\s+the)?(?:\s+(?P<team>axis|allies|spectators?))?',
    re.IGNORECASE,
)

CONNECTED_WORD = re.compile(r'\bconnected\b')
JOINED_WORD = re.compile(r'\bjoined\b')

# ClientUserinfoChanged team values that mean the player is in the game
PLAYING_TEAMS = {"1", "2", "3"}


def _strip_port(address: str) -> str:
    # IPv4 "a.b.c.d:port"; bare IPv6 has several colons and is kept whole
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def _extract_userinfo(text: str) -> Extraction:
    match = USERINFO.match(text)
    if not match:
        return {}
    info = parse_infostring(match.group("info"))
    result: Extraction = {"event_subtype": "userinfo"}
    if info.get("name"):
        result["player_name"] = strip_colors(info["name"])
    details = {}
    if info.get("ip"):
        details["ip"] = _strip_port(info["ip"])
    version = info.get("etVersion") or info.get("cg_etVersion")
    if version:
        details["client_version"] = version
    if details:
        result["details"] = details
    return result


def _extract_userinfo_changed(text: str) -> Extraction:
    match = USERINFO_CHANGED.match(text)
    if not match:
        return {}
    info = parse_infostring(match.group("info"))
    team = info.get("t")
    result: Extraction = {
        "slot": int(match.group("slot")),
        "event_subtype": "joined" if team in PLAYING_TEAMS else "slot_info",
    }
    if info.get("n"):
        result["player_name"] = strip_colors(info["n"])
    if team is not None:
        result["details"] = {"team": team}
    return result


def _extract_client_begin(text: str) -> Extraction:
    match = CLIENT_BEGIN.match(text)
    return {"slot": int(match.group("slot"))} if match else {}


def _extract_redirect(text: str) -> Extraction:
    match = REDIRECT.search(text)
    if not match:
        return {}
    result: Extraction = {"player_name": strip_colors(match.group("name"))}
    if match.group("file"):
        result["details"] = {"download_file": match.group("file").strip()}
    return result


def _extract_connect(text: str) -> Extraction:
    body = PRINT_PREFIX.sub("", text)

    match = CLIENT_CONNECT.match(body)
    if match:
        return {"event_subtype": "connect", **_slot_or_name(match.group("who"))}

    match = ENTERED.match(body)
    if match:
        return {"event_subtype": "joined", "player_name": strip_colors(match.group("name"))}

    match = CONNECTED.match(body)
    if match:
        return {"event_subtype": "connect", "player_name": strip_colors(match.group("name"))}

    match = JOINED.match(body)
    if match:
        result: Extraction = {
            "event_subtype": "joined",
            "player_name": strip_colors(match.group("name")),
        }
        if match.group("team"):
            result["details"] = {"team": match.group("team").lower()}
        return result

    return {"event_subtype": "connect"}


def _is_connect(lower: str) -> bool:
    return (
        "clientconnect:" in lower
        or "entered the game" in lower
        or CONNECTED_WORD.search(lower) is not None
        or JOINED_WORD.search(lower) is not None
    )


# =============================================================================
# Disconnects
# =============================================================================

CLIENT_DISCONNECT = re.compile(r'^ClientDisconnect:\s*(?P<who>.+?)\s*$', re.IGNORECASE)

DISCONNECT_PHRASES = ("disconnected", "timed out", "was kicked", "was dropped", "left the game")

DISCONNECT_PHRASE = re.compile(
    r'^(?P<name>.+?)\s+(?P<reason>disconnected|timed out|was kicked|was dropped|left the game)',
    re.IGNORECASE,
)


def _extract_disconnect(text: str) -> Extraction:
    body = PRINT_PREFIX.sub("", text)

    match = CLIENT_DISCONNECT.match(body)
    if match:
        return _slot_or_name(match.group("who"))

    match = DISCONNECT_PHRASE.match(body)
    if match:
        return {
            "player_name": strip_colors(match.group("name")),
            "details": {"reason": match.group("reason").lower()},
        }
    return {}


def _is_disconnect(lower: str) -> bool:
    return "clientdisconnect:" in lower or any(p in lower for p in DISCONNECT_PHRASES)


# =============================================================================
# Game state
# =============================================================================

ROUND_WORD = re.compile(r'\bround')
FLAG_WORD = re.compile(r'\bflag')
TEAM_WORD = re.compile(r'\b(?:allies|axis)\b')

OBJECTIVE_ACTOR = re.compile(
    r'^(?P<name>.+?)\s+(?:planted|defused|captured|stole|returned|secured)\b',
    re.IGNORECASE,
)


def _extract_objective_actor(text: str) -> Extraction:
    match = OBJECTIVE_ACTOR.match(PRINT_PREFIX.sub("", text))
    return {"player_name": strip_colors(match.group("name"))} if match else {}


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda lower: any(n in lower for n in needles)


def _searches(pattern: re.Pattern) -> Callable[[str], bool]:
    return lambda lower: pattern.search(lower) is not None


# =============================================================================
# The table
# =============================================================================

DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    # Chat belongs to the chat collaborator, whatever the message says
    ClassificationRule(
        "chat",
        lambda lower: lower.lstrip().startswith(CHAT_PREFIXES),
        Category.OTHER,
    ),
    ClassificationRule(
        "game_event",
        lambda lower: lower.startswith("gameevent:"),
        Category.GAMEPLAY,
        _extract_game_event,
    ),
    # Anchored lifecycle lines carry player names, which may contain kill words
    ClassificationRule(
        "checksum_mismatch",
        lambda lower: CHECKSUM_MISMATCH.search(lower) is not None,
        Category.CONNECTION,
        subtype="checksum_error",
    ),
    ClassificationRule(
        "userinfo",
        lambda lower: lower.startswith("userinfo:") and "\\name\\" in lower,
        Category.CONNECTION,
        _extract_userinfo,
    ),
    ClassificationRule(
        "userinfo_changed",
        lambda lower: lower.startswith("clientuserinfochanged:"),
        Category.CONNECTION,
        _extract_userinfo_changed,
    ),
    ClassificationRule(
        "client_begin",
        lambda lower: lower.startswith("clientbegin:"),
        Category.CONNECTION,
        _extract_client_begin,
        "joined",
    ),
    ClassificationRule(
        "download_redirect",
        lambda lower: lower.startswith("redirecting client"),
        Category.CONNECTION,
        _extract_redirect,
        "downloading",
    ),
    ClassificationRule("kill", _is_kill, Category.KILL, _extract_kill, "kill"),
    ClassificationRule("connect", _is_connect, Category.CONNECTION, _extract_connect, "connect"),
    ClassificationRule(
        "disconnect", _is_disconnect, Category.DISCONNECT, _extract_disconnect, "disconnect"
    ),
    ClassificationRule("error", _contains("error", "warning", "failed"), Category.ERROR),
    ClassificationRule("map_restart", _contains("map_restart"), Category.SYSTEM, subtype="map_restart"),
    ClassificationRule("timelimit", _contains("timelimit"), Category.SYSTEM, subtype="timelimit"),
    ClassificationRule("round", _searches(ROUND_WORD), Category.SYSTEM, subtype="round"),
    ClassificationRule(
        "objective",
        _contains("planted", "defused", "dynamite", "objective", "captured"),
        Category.GAMEPLAY,
        _extract_objective_actor,
        "objective",
    ),
    ClassificationRule(
        "flag", _searches(FLAG_WORD), Category.GAMEPLAY, _extract_objective_actor, "flag"
    ),
    ClassificationRule("spawn", _contains("spawn"), Category.GAMEPLAY, subtype="spawn"),
    ClassificationRule("team", _searches(TEAM_WORD), Category.GAMEPLAY, subtype="team"),
    ClassificationRule(
        "system",
        lambda lower: (
            "broadcast:" in lower
            or "print:" in lower
            or "warmup" in lower
            or "match" in lower
            or "server" in lower
            or lower.startswith("---")
        ),
        Category.SYSTEM,
    ),
)
