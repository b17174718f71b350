from fogserver.backend.progression import (
    StartingValues,
    get_player_level_cap,
    pips_in_rank,
    player_level_to_total_xp,
    rank_to_pips,
    xp_to_player_level,
)


def test_level_caps_follow_level_bands() -> None:
    assert get_player_level_cap(1) == 720
    assert get_player_level_cap(2) == 900
    assert get_player_level_cap(5) == 1200
    assert get_player_level_cap(13) == 2100
    assert get_player_level_cap(48) == 3750
    assert get_player_level_cap(99) == 4200


def test_xp_to_player_level_starts_at_level_one() -> None:
    level = xp_to_player_level(0)

    assert level == {
        "levelVersion": 1,
        "totalXp": 0,
        "currentXp": 0,
        "currentXpUpperBound": 720,
        "level": 1,
        "prestigeLevel": 0,
    }


def test_xp_to_player_level_carries_remainder() -> None:
    level = xp_to_player_level(720 + 900 + 10)

    assert level["level"] == 3
    assert level["currentXp"] == 10
    assert level["currentXpUpperBound"] == 1200


def test_full_prestige_wraps_level_back_to_one() -> None:
    total = player_level_to_total_xp(level=100, prestige_level=0, current_xp=0)

    level = xp_to_player_level(total)

    assert level["level"] == 1
    assert level["prestigeLevel"] == 1


def test_player_level_round_trips_through_total_xp() -> None:
    total = player_level_to_total_xp(level=30, prestige_level=2, current_xp=150)

    level = xp_to_player_level(total)

    assert (level["level"], level["prestigeLevel"], level["currentXp"]) == (30, 2, 150)


def test_rank_pips() -> None:
    assert pips_in_rank(20) == 3
    assert pips_in_rank(15) == 4
    assert pips_in_rank(2) == 5
    assert pips_in_rank(1) == 0
    assert rank_to_pips(20) == 0
    assert rank_to_pips(18) == 6
    assert rank_to_pips(1) == 85


def test_starting_values_derive_client_objects() -> None:
    values = StartingValues(survivor_rank=19, survivor_pips=1, killer_rank=20, killer_pips=2)

    assert values.pips == {"survivor": 4, "killer": 2}
    assert values.player_level_object["level"] == 1
    assert values.total_xp == 0
