from scoring import (
    advance_streak,
    age_multiplier,
    base_points_for,
    is_correct,
    score_answer,
    speed_bonus,
)


def test_speed_bonus_falls_one_point_per_whole_second():
    assert speed_bonus(0) == 10
    assert speed_bonus(999) == 10
    assert speed_bonus(1000) == 9
    assert speed_bonus(4500) == 6
    assert speed_bonus(9999) == 1
    assert speed_bonus(10000) == 0
    assert speed_bonus(60000) == 0

    previous = speed_bonus(0)
    for latency in range(0, 15000, 250):
        current = speed_bonus(latency)
        assert current <= previous
        previous = current


def test_base_points_fall_back_to_tier_table():
    assert base_points_for(25, "apprentice") == 25
    assert base_points_for(0, "apprentice") == 10
    assert base_points_for(None, "skilled") == 20
    assert base_points_for(-5, "master") == 30
    assert base_points_for(0, "king") == 40
    assert base_points_for(0, "grandmaster") == 50


def test_age_multiplier_only_for_grandmaster_with_age():
    assert age_multiplier("grandmaster", 10) == 1.2
    assert age_multiplier("grandmaster", 51) == 0.8
    assert age_multiplier("grandmaster", 30) == 1.0
    assert age_multiplier("grandmaster", None) == 1.0
    assert age_multiplier("king", 10) == 1.0
    assert age_multiplier("apprentice", 70) == 1.0


def test_young_player_grandmaster_answer_scores_72():
    breakdown = score_answer(
        correct=True,
        latency_ms=0,
        tier="grandmaster",
        base_points=50,
        age=10,
        previous_streak=0,
    )
    assert breakdown.total == 72
    assert breakdown.age_multiplier == 1.2

    lower_tier = score_answer(
        correct=True,
        latency_ms=0,
        tier="king",
        base_points=50,
        age=10,
        previous_streak=0,
    )
    assert lower_tier.total == 60
    assert lower_tier.age_multiplier == 1.0


def test_streak_bonus_on_third_correct_then_resets():
    assert advance_streak(0, True) == (1, 0)
    assert advance_streak(1, True) == (2, 0)
    assert advance_streak(2, True) == (0, 50)
    assert advance_streak(2, False) == (0, 0)

    third = score_answer(
        correct=True,
        latency_ms=10000,
        tier="apprentice",
        base_points=10,
        age=None,
        previous_streak=2,
    )
    assert third.streak_bonus == 50
    assert third.streak == 0
    assert third.total == 60


def test_wrong_answer_scores_nothing():
    breakdown = score_answer(
        correct=False,
        latency_ms=0,
        tier="grandmaster",
        base_points=50,
        age=10,
        previous_streak=2,
    )
    assert breakdown.total == 0
    assert breakdown.streak == 0
    assert breakdown.streak_bonus == 0


def test_answer_matching_trims_and_ignores_case_only():
    assert is_correct("  paris ", "Paris")
    assert is_correct("LEONARDO da vinci", "Leonardo da Vinci")
    assert not is_correct("Werner  Heisenberg", "Werner Heisenberg")
    assert not is_correct("STRASSE", "straße")
    assert not is_correct("Lyon", "Paris")
    assert not is_correct("", "Paris")
