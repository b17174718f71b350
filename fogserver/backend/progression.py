"""Player level, rank and starting value builders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PRESTIGE_TOTAL_XP = 352_470
MAX_LEVEL = 100


def get_player_level_cap(level: int) -> int:
    """Return the xp needed to leave the given player level."""
    if level == 1:
        return 720
    if level == 2:
        return 900
    if level <= 5:
        return 1200
    if level <= 13:
        return 2100
    if level <= 23:
        return 2700
    if level <= 33:
        return 3300
    if level <= 48:
        return 3750
    return 4200


def xp_to_player_level(total_xp: int) -> dict[str, Any]:
    """Convert total xp into the level object the client expects."""
    xp_left = total_xp
    level = 1
    prestige_level = 0
    cap = get_player_level_cap(level)
    while xp_left >= cap:
        xp_left -= cap
        level += 1
        if level == MAX_LEVEL:
            level = 1
            prestige_level += 1
        cap = get_player_level_cap(level)
    return {
        "levelVersion": 1,
        "totalXp": total_xp,
        "currentXp": xp_left,
        "currentXpUpperBound": get_player_level_cap(level),
        "level": level,
        "prestigeLevel": prestige_level,
    }


def player_level_to_total_xp(level: int, prestige_level: int, current_xp: int) -> int:
    total_xp = prestige_level * PRESTIGE_TOTAL_XP
    for previous_level in range(level - 1, 0, -1):
        total_xp += get_player_level_cap(previous_level)
    return total_xp + current_xp


def pips_in_rank(rank: int) -> int:
    if rank >= 19:
        return 3
    if rank >= 13:
        return 4
    if rank >= 2:
        return 5
    return 0


def rank_to_pips(rank: int) -> int:
    """Total pips earned when climbing from rank 20 up to the given rank."""
    return sum(pips_in_rank(current) for current in range(20, rank, -1))


@dataclass(frozen=True)
class StartingValues:
    bloodpoints: int = 1_000_000
    survivor_rank: int = 20
    survivor_pips: int = 0
    killer_rank: int = 20
    killer_pips: int = 0
    level: int = 1
    prestige_level: int = 0
    current_xp: int = 0

    @property
    def total_xp(self) -> int:
        return player_level_to_total_xp(self.level, self.prestige_level, self.current_xp)

    @property
    def player_level_object(self) -> dict[str, Any]:
        return xp_to_player_level(self.total_xp)

    @property
    def pips(self) -> dict[str, int]:
        return {
            "survivor": rank_to_pips(self.survivor_rank) + self.survivor_pips,
            "killer": rank_to_pips(self.killer_rank) + self.killer_pips,
        }
