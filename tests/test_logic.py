"""
Validator, feedback and generator behaviour.
"""
import random
from collections import Counter

import pytest

from eqle.app.puzzle.logic import (
    FALLBACK_EQUATIONS,
    answer_frequencies,
    apply_key_feedback,
    evaluate_left_to_right,
    generate_equation,
    is_valid_equation,
    score_guess,
    upgrade_key,
    validate_equation,
)
from eqle.app.puzzle.models import RejectReason, TileFeedback

C, P, A, U = (
    TileFeedback.CORRECT,
    TileFeedback.PRESENT,
    TileFeedback.ABSENT,
    TileFeedback.UNSET,
)


@pytest.mark.parametrize(
    "eq",
    ["12+57=69", "10+2-3=9", "18/2*1=9", "2+3*4=20", "01+01=02", "50-10=40"],
)
def test_valid_equations(eq):
    assert validate_equation(eq) == (True, None)


@pytest.mark.parametrize(
    "eq, reason",
    [
        ("1+1=2", RejectReason.INCOMPLETE_INPUT),
        ("12+57=690", RejectReason.INCOMPLETE_INPUT),
        ("12++57=6", RejectReason.MALFORMED_EQUATION),
        ("=12+5769", RejectReason.MALFORMED_EQUATION),
        ("12+57-69", RejectReason.MALFORMED_EQUATION),
        ("1257=69+", RejectReason.MALFORMED_EQUATION),
        ("12345=69", RejectReason.MALFORMED_EQUATION),
        ("1+1=2=22", RejectReason.MALFORMED_EQUATION),
        ("10+10=21", RejectReason.ARITHMETIC_MISMATCH),
        ("9/0+1=10", RejectReason.ARITHMETIC_MISMATCH),
        ("7/2*2=07", RejectReason.ARITHMETIC_MISMATCH),
        ("2+3*4=14", RejectReason.ARITHMETIC_MISMATCH),
    ],
)
def test_rejected_equations(eq, reason):
    assert validate_equation(eq) == (False, reason)


def test_evaluation_is_strictly_left_to_right():
    assert evaluate_left_to_right([2, 3, 4], ["+", "*"]) == 20
    assert evaluate_left_to_right([20, 3], ["/"]) is None
    assert evaluate_left_to_right([5, 0], ["/"]) is None


def test_spaces_are_stripped_before_grammar_check():
    # typed with a gap; still the same equation once spaces go
    assert validate_equation("12+57=6 ") == (False, RejectReason.ARITHMETIC_MISMATCH)
    assert validate_equation("1+1=2   ") == (True, None)


def test_exact_match_is_all_correct():
    assert score_guess("12+57=69", "12+57=69") == [C] * 8


def test_duplicates_marked_present_only_while_answer_has_them():
    tiles = score_guess("10+10=20", "01+01=20")
    assert tiles == [P, P, C, P, P, C, C, C]


def test_surplus_duplicates_are_absent():
    # answer has a single 9; the correct one consumes it
    tiles = score_guess("12+57=69", "99-90=09")
    assert tiles[7] == C
    assert tiles[0] == A and tiles[1] == A and tiles[3] == A
    assert tiles[5] == C


def test_caller_owned_frequency_table_is_consumed():
    remaining = answer_frequencies("10+10=20")
    score_guess("10+10=20", "10+10=20", remaining)
    assert all(v == 0 for v in remaining.values())


def test_spaces_never_marked():
    tiles = score_guess("12+57=69", "12+5    ")
    assert tiles[4:] == [U] * 4


def test_marked_count_never_exceeds_answer_frequency():
    rng = random.Random(11)
    for _ in range(300):
        answer = generate_equation(rng)
        guess = generate_equation(rng)
        tiles = score_guess(answer, guess)
        marked = Counter(ch for ch, t in zip(guess, tiles) if t in (C, P))
        freq = Counter(answer)
        for ch, n in marked.items():
            assert n <= freq[ch]


def test_key_priority_never_downgrades():
    keys = {}
    upgrade_key(keys, "1", A)
    upgrade_key(keys, "1", P)
    assert keys["1"] == P
    upgrade_key(keys, "1", A)
    assert keys["1"] == P
    upgrade_key(keys, "1", C)
    upgrade_key(keys, "1", P)
    upgrade_key(keys, "1", A)
    assert keys["1"] == C


def test_apply_key_feedback_uses_best_tile_per_character():
    keys = apply_key_feedback({}, "01+01=20", [P, P, C, P, A, C, C, C])
    assert keys["0"] == C
    assert keys["1"] == P
    assert keys["+"] == C


def test_generator_output_is_always_self_valid():
    rng = random.Random(2024)
    seen_two_ops = False
    for _ in range(500):
        eq = generate_equation(rng)
        assert len(eq) == 8
        assert is_valid_equation(eq), eq
        seen_two_ops = seen_two_ops or sum(ch in "+-*/" for ch in eq) == 2
    assert seen_two_ops


def test_generator_is_deterministic_for_a_seed():
    assert generate_equation(random.Random(5)) == generate_equation(random.Random(5))


class AlwaysRejects(random.Random):
    """Two operators, first one a division by zero, every time."""

    def randint(self, a, b):
        return b if (a, b) == (1, 2) else a

    def choice(self, seq):
        return "/" if "/" in seq else seq[-1]


def test_exhausted_generation_falls_back_to_pool():
    eq = generate_equation(AlwaysRejects(), attempts=100)
    assert eq == FALLBACK_EQUATIONS[-1]


def test_fallback_pool_is_valid():
    for eq in FALLBACK_EQUATIONS:
        assert len(eq) == 8 and is_valid_equation(eq)
    assert generate_equation(random.Random(1), attempts=0) in FALLBACK_EQUATIONS
