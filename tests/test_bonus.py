"""Streak bonus detection tests - pure, no database."""

from app.services.bonus import (
    BonusRun,
    detect,
    lesson_percentages,
    parse_fraction,
    still_qualifies,
)
from app.services.curriculum import Curriculum
from app.services.rules import BonusRule

CURRICULUM = Curriculum(version="test", lessons=("L1", "L2", "L3", "L4", "L5", "L6"))
THREE_PERFECT = (BonusRule(last_n=3, percentage=100, points=15),)


def test_parse_fraction():
    assert parse_fraction("8/10") == 80
    assert parse_fraction(" 7.5 / 10 ") == 75
    assert parse_fraction("2/3") == 67
    assert parse_fraction("5/0") == 0
    assert parse_fraction("Didn't Attend The Quiz") is None
    assert parse_fraction(None) is None


def test_quiz_percentages_prefer_online_submissions_and_skip_sentinels():
    lessons = {
        "L1": {"quizDegree": "10/10"},
        "L2": {"quizDegree": "6/10"},
        "L3": {"quizDegree": "Didn't Attend The Quiz"},
        "L4": {"quizDegree": "No Quiz"},
        "L5": {"homework_degree": "10/10"},
    }
    online = [{"lesson": "L2", "result": "20/20"}, {"lesson": "", "result": "1/1"}]
    percentages = lesson_percentages("quiz", lessons, [], online, [])
    assert percentages == {"L1": 100, "L2": 100}


def test_homework_and_mock_exam_sources():
    lessons = {"L1": {"homework_degree": "9/10"}, "L2": {"quizDegree": "10/10"}}
    online_hw = [{"lesson": "L3", "result": "4/4"}]
    assert lesson_percentages("homework", lessons, online_hw, [], []) == {"L1": 90, "L3": 100}

    mocks = [{"lesson": "L1", "percentage": "85%"}, {"lesson": "L2", "percentage": "n/a"}]
    assert lesson_percentages("mock_exam", lessons, [], [], mocks) == {"L1": 85}


def test_three_consecutive_perfect_lessons_award_once():
    percentages = {"L1": 100, "L2": 100, "L3": 100}
    result = detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L3")
    assert result.points == 15
    assert result.lessons == ["L1", "L2", "L3"]
    assert result.runs == [BonusRun(("L1", "L2", "L3"), 3, 100, 15)]


def test_focus_lesson_outside_run_earns_nothing():
    percentages = {"L1": 100, "L2": 100, "L3": 100, "L4": 80}
    result = detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L4")
    assert result.points == 0
    assert result.runs == []


def test_without_focus_first_run_is_awarded():
    percentages = {"L2": 100, "L3": 100, "L4": 100, "L5": 100}
    result = detect(THREE_PERFECT, percentages, CURRICULUM)
    assert result.runs[0].lessons == ("L2", "L3", "L4")
    assert result.points == 15


def test_gap_in_curriculum_breaks_streak():
    percentages = {"L1": 100, "L2": 100, "L4": 100}
    assert detect(THREE_PERFECT, percentages, CURRICULUM).points == 0


def test_adjacency_uses_curriculum_order_not_insertion_order():
    percentages = {"L3": 100, "L1": 100, "L2": 100}
    result = detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L1")
    assert result.runs[0].lessons == ("L1", "L2", "L3")


def test_percentage_must_match_exactly():
    percentages = {"L1": 100, "L2": 99, "L3": 100}
    assert detect(THREE_PERFECT, percentages, CURRICULUM).points == 0


def test_lessons_outside_curriculum_never_form_streaks():
    percentages = {"Bonus A": 100, "Bonus B": 100, "L1": 100}
    assert detect(THREE_PERFECT, percentages, CURRICULUM).points == 0


def test_held_run_blocks_overlapping_windows():
    percentages = {name: 100 for name in CURRICULUM.lessons}
    held = [BonusRun(("L1", "L2", "L3"), 3, 100, 15)]

    assert detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L3", held=held).runs == []
    assert detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L2", held=held).runs == []

    result = detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L6", held=held)
    assert result.runs == [BonusRun(("L4", "L5", "L6"), 3, 100, 15)]


def test_held_run_of_other_rule_does_not_block():
    percentages = {"L1": 100, "L2": 100, "L3": 100}
    held = [BonusRun(("L1", "L2"), 2, 100, 5)]
    result = detect(THREE_PERFECT, percentages, CURRICULUM, focus_lesson="L3", held=held)
    assert result.points == 15



def test_each_rule_awards_independently_with_deduplicated_lessons():
    rules = THREE_PERFECT + (BonusRule(last_n=2, percentage=100, points=5),)
    percentages = {"L1": 100, "L2": 100, "L3": 100}
    result = detect(rules, percentages, CURRICULUM, focus_lesson="L2")
    assert result.points == 20
    assert result.lessons == ["L1", "L2", "L3"]
    assert len(result.runs) == 2


def test_still_qualifies():
    run = BonusRun(("L1", "L2", "L3"), 3, 100, 15)
    assert still_qualifies(run, {"L1": 100, "L2": 100, "L3": 100}, CURRICULUM)
    assert not still_qualifies(run, {"L1": 100, "L2": 80, "L3": 100}, CURRICULUM)


def test_run_round_trips_through_ledger_shape():
    run = BonusRun(("L1", "L2"), 2, 100, 5)
    negated = run.to_dict(sign=-1)
    assert negated["points"] == -5
    assert BonusRun.from_dict(negated).key == run.key
