from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from eqle.app.puzzle.logic import (
    TOKENS,
    answer_frequencies,
    apply_key_feedback,
    score_guess,
    validate_equation,
)
from eqle.app.puzzle.models import (
    EQUATION_LENGTH,
    MAX_GUESSES,
    Cursor,
    GameStatus,
    Guess,
    Outcome,
    RejectReason,
    TileFeedback,
)


def _empty_guesses() -> List[Guess]:
    return [Guess() for _ in range(MAX_GUESSES)]


@dataclass
class SessionState:
    """One day's board: six guess rows, the typing cursor and keyboard feedback.

    Pure state machine; persistence and stats are the engine's concern.
    Every rejected command leaves the state untouched.
    """

    answer: str
    guesses: List[Guess] = field(default_factory=_empty_guesses)
    row: int = 0
    col: int = 0
    key_feedback: Dict[str, TileFeedback] = field(default_factory=dict)

    @property
    def status(self) -> GameStatus:
        if self.row > 0 and self.guesses[self.row - 1].solved:
            return GameStatus.WON
        if self.row >= MAX_GUESSES:
            return GameStatus.LOST
        return GameStatus.IN_PROGRESS

    @property
    def terminal(self) -> bool:
        return self.status != GameStatus.IN_PROGRESS

    @property
    def tries_used(self) -> int:
        return self.row

    @property
    def cursor(self) -> Cursor:
        return Cursor(row=self.row, col=self.col)

    def _reject(self, reason: RejectReason) -> Outcome:
        return Outcome.reject(reason, self.status)

    def _write(self, col: int, ch: str) -> None:
        g = self.guesses[self.row]
        g.equation = g.equation[:col] + ch + g.equation[col + 1 :]

    def insert_character(self, ch: str) -> Outcome:
        if self.terminal:
            return self._reject(RejectReason.SESSION_TERMINAL)
        if len(ch) != 1 or ch not in TOKENS:
            return self._reject(RejectReason.UNSUPPORTED_KEY)
        if self.col >= EQUATION_LENGTH:
            return self._reject(RejectReason.ROW_FULL)
        self._write(self.col, ch)
        self.col += 1
        return Outcome(accepted=True, status=self.status)

    def delete_character(self) -> Outcome:
        if self.terminal:
            return self._reject(RejectReason.SESSION_TERMINAL)
        if self.col <= 0:
            return self._reject(RejectReason.ROW_EMPTY)
        self.col -= 1
        self._write(self.col, " ")
        return Outcome(accepted=True, status=self.status)

    def submit_guess(self) -> Outcome:
        if self.terminal:
            return self._reject(RejectReason.SESSION_TERMINAL)
        if self.col != EQUATION_LENGTH:
            return self._reject(RejectReason.INCOMPLETE_INPUT)
        guess = self.guesses[self.row]
        ok, reason = validate_equation(guess.equation)
        if not ok:
            return self._reject(reason)

        tiles = score_guess(self.answer, guess.equation, answer_frequencies(self.answer))
        guess.tiles = tiles
        apply_key_feedback(self.key_feedback, guess.equation, tiles)
        self.row += 1
        self.col = 0
        status = self.status
        message = None
        if status == GameStatus.WON:
            message = "You solved it!"
        elif status == GameStatus.LOST:
            message = f"Out of tries! The answer was {self.answer}."
        return Outcome(accepted=True, tiles=tiles, status=status, message=message)

    def snapshot(self) -> Tuple[List[Guess], int, int, Dict[str, TileFeedback]]:
        return (
            [g.model_copy(deep=True) for g in self.guesses],
            self.row,
            self.col,
            dict(self.key_feedback),
        )

    def restore(self, snap: Tuple[List[Guess], int, int, Dict[str, TileFeedback]]) -> None:
        guesses, self.row, self.col, key_feedback = snap
        self.guesses = [g.model_copy(deep=True) for g in guesses]
        self.key_feedback = dict(key_feedback)
