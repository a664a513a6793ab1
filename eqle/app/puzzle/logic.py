from __future__ import annotations
import logging
import random
import re
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from eqle.app.puzzle.models import EQUATION_LENGTH, RejectReason, TileFeedback

logger = logging.getLogger(__name__)

DIGITS = set("0123456789")
OPS = set("+-*/")
TOKENS = DIGITS | OPS | {"="}
EQUATION_RE = re.compile(r"^[0-9]+[+\-*/][0-9]+([+\-*/][0-9]+)*=[0-9]+$")
OPERATOR_RE = re.compile(r"[+\-*/]")

FALLBACK_EQUATIONS = ("10+10=20", "50-10=40", "10+2-3=9", "18/2*1=9")
GENERATION_ATTEMPTS = 100

PRIORITY = {
    TileFeedback.UNSET: 0,
    TileFeedback.ABSENT: 1,
    TileFeedback.PRESENT: 2,
    TileFeedback.CORRECT: 3,
}


# ──────────────────────────────────────────────────────────────────────────────
# Evaluation
# ──────────────────────────────────────────────────────────────────────────────
def apply_op(val: int, op: str, rhs: int) -> Optional[int]:
    """One left-to-right step; None when division is by zero or inexact."""
    if op == "+":
        return val + rhs
    if op == "-":
        return val - rhs
    if op == "*":
        return val * rhs
    if op == "/":
        if rhs == 0 or val % rhs != 0:
            return None
        return val // rhs
    return None


def evaluate_left_to_right(operands: Sequence[int], operators: Sequence[str]) -> Optional[int]:
    val = operands[0]
    for op, rhs in zip(operators, operands[1:]):
        val = apply_op(val, op, rhs)
        if val is None:
            return None
    return val


def validate_equation(s: str) -> Tuple[bool, Optional[RejectReason]]:
    if len(s) != EQUATION_LENGTH:
        return False, RejectReason.INCOMPLETE_INPUT
    clean = s.replace(" ", "")
    if not EQUATION_RE.match(clean):
        return False, RejectReason.MALFORMED_EQUATION
    left, right = clean.split("=", 1)
    try:
        operands = [int(part) for part in OPERATOR_RE.split(left)]
        result = int(right)
    except ValueError:
        return False, RejectReason.MALFORMED_EQUATION
    operators = OPERATOR_RE.findall(left)
    if len(operators) != len(operands) - 1:
        return False, RejectReason.MALFORMED_EQUATION
    if evaluate_left_to_right(operands, operators) != result:
        return False, RejectReason.ARITHMETIC_MISMATCH
    return True, None


def is_valid_equation(s: str) -> bool:
    return validate_equation(s)[0]


# ──────────────────────────────────────────────────────────────────────────────
# Feedback
# ──────────────────────────────────────────────────────────────────────────────
def answer_frequencies(answer: str) -> Dict[str, int]:
    return Counter(ch for ch in answer if ch != " ")


def score_guess(
    answer: str, guess: str, remaining: Optional[Dict[str, int]] = None
) -> List[TileFeedback]:
    """Two-pass duplicate-aware comparison.

    ``remaining`` is the caller's frequency table for ``answer``; it is built
    from the answer when omitted and is consumed in place.
    """
    if remaining is None:
        remaining = answer_frequencies(answer)
    res = [TileFeedback.UNSET] * len(guess)
    for i, (g, a) in enumerate(zip(guess, answer)):
        if g == a and g != " ":
            res[i] = TileFeedback.CORRECT
            remaining[g] -= 1
    for i, g in enumerate(guess):
        if res[i] == TileFeedback.CORRECT or g == " ":
            continue
        if remaining.get(g, 0) > 0:
            res[i] = TileFeedback.PRESENT
            remaining[g] -= 1
        else:
            res[i] = TileFeedback.ABSENT
    return res


def upgrade_key(key_feedback: Dict[str, TileFeedback], ch: str, fb: TileFeedback) -> None:
    current = key_feedback.get(ch, TileFeedback.UNSET)
    if PRIORITY[fb] > PRIORITY[current]:
        key_feedback[ch] = fb


def apply_key_feedback(
    key_feedback: Dict[str, TileFeedback], guess: str, tiles: Sequence[TileFeedback]
) -> Dict[str, TileFeedback]:
    for ch, fb in zip(guess, tiles):
        if ch != " " and fb != TileFeedback.UNSET:
            upgrade_key(key_feedback, ch, fb)
    return key_feedback


# ──────────────────────────────────────────────────────────────────────────────
# Generation
# ──────────────────────────────────────────────────────────────────────────────
def _one_operator(rng: random.Random) -> str:
    op = rng.choice("+-")
    if op == "+":
        a = rng.randint(10, 49)
        b = rng.randint(10, 99 - a)
        c = a + b
    else:
        a = rng.randint(20, 99)
        b = rng.randint(10, a - 10)
        c = a - b
    return f"{a}{op}{b}={c}"


def _two_operators(rng: random.Random) -> Optional[str]:
    # XXoYoZ=W
    a = rng.randint(10, 99)
    op1 = rng.choice("+-*/")
    b = rng.randint(0, 9)
    step1 = apply_op(a, op1, b)
    if step1 is None or step1 < 0:
        return None
    op2 = rng.choice("+-*/")
    c = rng.randint(0, 9)
    step2 = apply_op(step1, op2, c)
    if step2 is None or not 0 <= step2 <= 9:
        return None
    return f"{a}{op1}{b}{op2}{c}={step2}"


def generate_equation(
    rng: Optional[random.Random] = None, attempts: int = GENERATION_ATTEMPTS
) -> str:
    rng = rng or random.Random()
    for _ in range(attempts):
        eq = _one_operator(rng) if rng.randint(1, 2) == 1 else _two_operators(rng)
        if eq and len(eq) == EQUATION_LENGTH:
            return eq
    logger.warning("equation generation exhausted %d attempts; using fallback pool", attempts)
    return rng.choice(FALLBACK_EQUATIONS)
