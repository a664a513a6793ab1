from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

EQUATION_LENGTH = 8
MAX_GUESSES = 6


class TileFeedback(str, Enum):
    CORRECT = "correct"
    PRESENT = "present"
    ABSENT = "absent"
    UNSET = "unset"


class GameStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    LOST = "lost"


class RejectReason(str, Enum):
    INCOMPLETE_INPUT = "incomplete_input"
    MALFORMED_EQUATION = "malformed_equation"
    ARITHMETIC_MISMATCH = "arithmetic_mismatch"
    SESSION_TERMINAL = "session_terminal"
    ALREADY_PLAYED_TODAY = "already_played_today"
    UNSUPPORTED_KEY = "unsupported_key"
    ROW_FULL = "row_full"
    ROW_EMPTY = "row_empty"
    STORE_UNAVAILABLE = "store_unavailable"


MESSAGES: Dict[RejectReason, str] = {
    RejectReason.INCOMPLETE_INPUT: "Complete the equation first!",
    RejectReason.MALFORMED_EQUATION: "Invalid equation!",
    RejectReason.ARITHMETIC_MISMATCH: "That equation doesn't add up!",
    RejectReason.SESSION_TERMINAL: "The game is over. Come back tomorrow!",
    RejectReason.ALREADY_PLAYED_TODAY: "You've already played today.",
    RejectReason.UNSUPPORTED_KEY: "Only digits, + - * / and = are allowed.",
    RejectReason.ROW_FULL: "The row is full.",
    RejectReason.ROW_EMPTY: "Nothing to delete.",
    RejectReason.STORE_UNAVAILABLE: "Couldn't save your progress. Try again.",
}


def _blank_tiles() -> List[TileFeedback]:
    return [TileFeedback.UNSET] * EQUATION_LENGTH


class Guess(BaseModel):
    equation: str = " " * EQUATION_LENGTH
    tiles: List[TileFeedback] = Field(default_factory=_blank_tiles)

    @property
    def finalized(self) -> bool:
        return all(t != TileFeedback.UNSET for t in self.tiles)

    @property
    def solved(self) -> bool:
        return all(t == TileFeedback.CORRECT for t in self.tiles)


class Stats(BaseModel):
    total_played: int = 0
    total_won: int = 0
    win_distribution: List[int] = Field(default_factory=lambda: [0] * MAX_GUESSES)
    current_streak: int = 0
    best_streak: int = 0
    fewest_tries: int = MAX_GUESSES

    @property
    def win_percentage(self) -> int:
        if not self.total_played:
            return 0
        return round(self.total_won / self.total_played * 100)


class Outcome(BaseModel):
    accepted: bool
    reason: Optional[RejectReason] = None
    message: Optional[str] = None
    tiles: Optional[List[TileFeedback]] = None
    status: GameStatus = GameStatus.IN_PROGRESS

    @classmethod
    def reject(cls, reason: RejectReason, status: GameStatus) -> "Outcome":
        return cls(accepted=False, reason=reason, message=MESSAGES[reason], status=status)


class Cursor(BaseModel):
    row: int = 0
    col: int = 0


class GameView(BaseModel):
    day: str
    guesses: List[Guess]
    cursor: Cursor
    status: GameStatus
    terminal: bool
    tries_used: int = 0
    key_feedback: Dict[str, TileFeedback]
    can_play_today: bool
    answer: Optional[str] = Field(None, description="revealed only once terminal")


class StatsView(BaseModel):
    total_played: int
    total_won: int
    win_percentage: int
    win_distribution: List[int]
    current_streak: int
    best_streak: int
    fewest_tries: int


class KeyRequest(BaseModel):
    key: str = Field(..., min_length=1, max_length=1)


class GuessRequest(BaseModel):
    guess: str
