import json

from models.activity import Activity
from utils.grading import (
    FillBlankKey,
    GradeResult,
    MemoryVerseKey,
    MultipleChoiceKey,
    TrueFalseKey,
    UnsupportedKey,
    coerce_answer,
    correct_answer_text,
    grade,
    parse_answer_key,
)


def _activity(activity_type: str, data, points: int = 10) -> Activity:
    return Activity(
        id=1,
        lesson_id=1,
        activity_type=activity_type,
        activity_data=json.dumps(data) if isinstance(data, dict) else data,
        points=points,
    )


def test_multiple_choice_scores_by_index():
    activity = _activity("multiple_choice", {"options": ["A", "B", "C"], "correct": 1}, points=10)

    assert grade(activity, 1) == GradeResult(is_correct=True, points_earned=10)
    assert grade(activity, 0) == GradeResult(is_correct=False, points_earned=0)


def test_multiple_choice_out_of_range_is_incorrect():
    activity = _activity("multiple_choice", {"options": ["A", "B", "C"], "correct": 1})

    assert grade(activity, 7) == GradeResult(is_correct=False, points_earned=0)
    assert grade(activity, -1) == GradeResult(is_correct=False, points_earned=0)


def test_multiple_choice_rejects_booleans_and_strings():
    activity = _activity("multiple_choice", {"options": ["No", "Yes"], "correct": 1})

    assert grade(activity, True).is_correct is False
    assert grade(activity, "1").is_correct is False


def test_fill_blank_ignores_case_and_surrounding_space():
    activity = _activity("fill_blank", {"answers": ["Noah"]}, points=5)

    assert grade(activity, " noah ") == GradeResult(is_correct=True, points_earned=5)
    assert grade(activity, "NOAH") == GradeResult(is_correct=True, points_earned=5)
    assert grade(activity, "Moses") == GradeResult(is_correct=False, points_earned=0)


def test_fill_blank_accepts_any_listed_answer():
    activity = _activity("fill_blank", {"answers": ["Paul", "Saul"]}, points=5)

    assert grade(activity, "saul").is_correct is True


def test_true_false_requires_boolean():
    activity = _activity("true_false", {"correct": False}, points=4)

    assert grade(activity, False) == GradeResult(is_correct=True, points_earned=4)
    assert grade(activity, True) == GradeResult(is_correct=False, points_earned=0)
    assert grade(activity, 0).is_correct is False


def test_memory_verse_always_correct():
    activity = _activity("memory_verse", {"verse": "Jesus wept.", "reference": "John 11:35"}, points=15)

    assert grade(activity, True) == GradeResult(is_correct=True, points_earned=15)


def test_unsupported_types_are_not_graded():
    drawing = _activity("drawing", {"canvas": "large"})
    matching = _activity("matching", {"pairs": [["a", "b"]]})

    assert grade(drawing, "anything") is None
    assert grade(matching, 0) is None


def test_malformed_keys_are_unsupported():
    assert isinstance(parse_answer_key("multiple_choice", {"options": ["A"]}), UnsupportedKey)
    assert isinstance(parse_answer_key("multiple_choice", {"options": ["A"], "correct": True}), UnsupportedKey)
    assert isinstance(parse_answer_key("true_false", {"correct": "yes"}), UnsupportedKey)
    assert isinstance(parse_answer_key("fill_blank", {"answers": []}), UnsupportedKey)
    assert grade(_activity("fill_blank", "not json"), "x") is None


def test_points_never_exceed_activity_value():
    for points in (0, 1, 10, 25):
        activity = _activity("multiple_choice", {"options": ["A", "B"], "correct": 0}, points=points)
        correct = grade(activity, 0)
        wrong = grade(activity, 1)
        assert 0 <= correct.points_earned <= points
        assert wrong.points_earned == 0


def test_negative_points_are_clamped():
    activity = _activity("fill_blank", {"answers": ["x"]}, points=-5)

    assert activity.points == 0
    assert grade(activity, "x") == GradeResult(is_correct=True, points_earned=0)


def test_coerce_answer_by_key_kind():
    mc = MultipleChoiceKey(options=("A", "B"), correct=1)
    tf = TrueFalseKey(correct=True)
    fb = FillBlankKey(answers=("Noah",))
    mv = MemoryVerseKey(verse="Jesus wept.")

    assert coerce_answer(mc, " 1 ") == 1
    assert coerce_answer(mc, "B") is None
    assert coerce_answer(tf, "True") is True
    assert coerce_answer(tf, "false") is False
    assert coerce_answer(tf, "maybe") is None
    assert coerce_answer(fb, " noah ") == " noah "
    assert coerce_answer(mv, "recited") is True
    assert coerce_answer(fb, "   ") is None
    assert coerce_answer(mc, None) is None
    assert coerce_answer(UnsupportedKey("drawing"), "x") is None


def test_correct_answer_text():
    assert correct_answer_text(MultipleChoiceKey(options=("A", "B"), correct=1)) == "B"
    assert correct_answer_text(MultipleChoiceKey(options=("A",), correct=4)) == ""
    assert correct_answer_text(TrueFalseKey(correct=False)) == "False"
    assert correct_answer_text(FillBlankKey(answers=("Noah", "noah"))) == "Noah"
    assert correct_answer_text(UnsupportedKey("drawing")) == ""
