from __future__ import annotations
import datetime as dt
import logging
import random
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from eqle.app.puzzle import storage as keys
from eqle.app.puzzle.clock import day_key, format_day, parse_day, time_until_next_puzzle
from eqle.app.puzzle.logic import GENERATION_ATTEMPTS, TOKENS, generate_equation
from eqle.app.puzzle.models import (
    EQUATION_LENGTH,
    MAX_GUESSES,
    GameStatus,
    GameView,
    Guess,
    Outcome,
    RejectReason,
    Stats,
    TileFeedback,
)
from eqle.app.puzzle.session import SessionState
from eqle.app.puzzle.storage import StoreError
from eqle.app.puzzle.tracker import DailyGate, StreakTracker, log_stats
from eqle_core import event_bus

logger = logging.getLogger(__name__)


BLANK_ROW = " " * EQUATION_LENGTH


def _consistent(guesses: List[Guess], row: Any, col: Any) -> bool:
    """A saved board is usable only if it could have been produced by play.

    Rows above the cursor are scored and complete, nothing after a solved row,
    the cursor row holds ``col`` typed characters and no tiles, rows below are blank.
    """
    if (
        len(guesses) != MAX_GUESSES
        or any(len(g.equation) != EQUATION_LENGTH or len(g.tiles) != EQUATION_LENGTH for g in guesses)
        or isinstance(row, bool)
        or isinstance(col, bool)
        or not isinstance(row, int)
        or not isinstance(col, int)
        or not 0 <= row <= MAX_GUESSES
        or not 0 <= col <= EQUATION_LENGTH
        or (row == MAX_GUESSES and col != 0)
    ):
        return False
    for i, g in enumerate(guesses[:row]):
        if not g.finalized or " " in g.equation:
            return False
        if g.solved and i < row - 1:
            return False
    if row < MAX_GUESSES:
        current = guesses[row]
        if any(t != TileFeedback.UNSET for t in current.tiles):
            return False
        if " " in current.equation[:col] or current.equation[col:].strip():
            return False
    for g in guesses[row + 1 :]:
        if g.equation != BLANK_ROW or any(t != TileFeedback.UNSET for t in g.tiles):
            return False
    return True


class GameEngine:
    """The daily puzzle as seen by a presentation layer.

    Queries (``current_state``, ``stats``, ``can_play_today``) never mutate.
    Commands (``insert_character``, ``delete_character``, ``submit_guess``)
    return an :class:`Outcome` and persist explicitly after each accepted
    transition. The calendar day is re-checked on every entry point, so a
    long-lived engine rolls over to a new puzzle at local midnight.
    """

    def __init__(
        self,
        store,
        rng: Optional[random.Random] = None,
        now: Optional[Callable[[], dt.datetime]] = None,
        attempts: int = GENERATION_ATTEMPTS,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.now = now or dt.datetime.now
        self.attempts = attempts
        self.gate = DailyGate(store)
        self.tracker = StreakTracker(store)
        self.day: Optional[dt.date] = None
        self.session: Optional[SessionState] = None
        self._ensure_day()

    # ── day handling ─────────────────────────────────────────────────────────
    def _ensure_day(self) -> dt.date:
        today = day_key(self.now())
        if today != self.day:
            self._start_day(today)
        return today

    def _start_day(self, today: dt.date) -> None:
        answer, fresh = self.gate.todays_answer(
            today, lambda: generate_equation(self.rng, self.attempts)
        )
        session = SessionState(answer=answer)
        if not fresh and parse_day(self.store.get(keys.LAST_PLAYED_DATE)) == today:
            session = self._restore(answer) or session
        self.session = session
        self.day = today

    def _restore(self, answer: str) -> Optional[SessionState]:
        try:
            guesses = [Guess.model_validate(g) for g in self.store.get(keys.SAVED_GUESSES) or []]
            row = self.store.get(keys.CURRENT_GUESS_INDEX, 0)
            col = self.store.get(keys.CURRENT_CHAR_INDEX, 0)
            colors = {
                k: TileFeedback(v) for k, v in (self.store.get(keys.KEY_COLORS) or {}).items()
            }
        except (ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.warning("saved session unreadable, starting fresh: %s", e)
            return None
        if not _consistent(guesses, row, col) or any(k not in TOKENS for k in colors):
            logger.warning("saved session inconsistent, starting fresh")
            return None
        return SessionState(answer=answer, guesses=guesses, row=row, col=col, key_feedback=colors)

    def _session_items(self, today: dt.date) -> Dict[str, Any]:
        s = self.session
        return {
            keys.SAVED_GUESSES: [g.model_dump(mode="json") for g in s.guesses],
            keys.CURRENT_GUESS_INDEX: s.row,
            keys.CURRENT_CHAR_INDEX: s.col,
            keys.KEY_COLORS: {k: v.value for k, v in s.key_feedback.items()},
            keys.LAST_PLAYED_DATE: format_day(today),
        }

    def _guard(self, today: dt.date) -> Optional[Outcome]:
        if self.session.terminal:
            return Outcome.reject(RejectReason.SESSION_TERMINAL, self.session.status)
        if not self.gate.can_play_today(today):
            return Outcome.reject(RejectReason.ALREADY_PLAYED_TODAY, self.session.status)
        return None

    # ── queries ──────────────────────────────────────────────────────────────
    def can_play_today(self) -> bool:
        return self.gate.can_play_today(self._ensure_day())

    def current_state(self) -> GameView:
        today = self._ensure_day()
        s = self.session
        return GameView(
            day=format_day(today),
            guesses=[g.model_copy(deep=True) for g in s.guesses],
            cursor=s.cursor,
            status=s.status,
            terminal=s.terminal,
            tries_used=s.tries_used,
            key_feedback=dict(s.key_feedback),
            can_play_today=self.gate.can_play_today(today),
            answer=s.answer if s.terminal else None,
        )

    def stats(self) -> Stats:
        return self.tracker.stats()

    def time_until_next_puzzle(self) -> dt.timedelta:
        return time_until_next_puzzle(self.now())

    # ── commands ─────────────────────────────────────────────────────────────
    def start_session(self) -> Outcome:
        today = self._ensure_day()
        if not self.gate.can_play_today(today):
            return Outcome.reject(RejectReason.ALREADY_PLAYED_TODAY, self.session.status)
        return Outcome(accepted=True, status=self.session.status)

    def _unsaved(self, snap, e: StoreError) -> Outcome:
        logger.warning("could not save session, rolled back: %s", e)
        self.session.restore(snap)
        return Outcome.reject(RejectReason.STORE_UNAVAILABLE, self.session.status)

    def _edit(self, change: Callable[[], Outcome]) -> Outcome:
        today = self._ensure_day()
        blocked = self._guard(today)
        if blocked:
            return blocked
        snap = self.session.snapshot()
        out = change()
        if out.accepted:
            try:
                self.store.set_many(self._session_items(today))
            except StoreError as e:
                return self._unsaved(snap, e)
        return out

    def insert_character(self, ch: str) -> Outcome:
        return self._edit(lambda: self.session.insert_character(ch))

    def delete_character(self) -> Outcome:
        return self._edit(lambda: self.session.delete_character())

    def submit_guess(self) -> Outcome:
        today = self._ensure_day()
        blocked = self._guard(today)
        if blocked:
            return blocked
        snap = self.session.snapshot()
        out = self.session.submit_guess()
        if not out.accepted:
            return out

        s = self.session
        won = s.status == GameStatus.WON
        items = self._session_items(today)
        update = None
        # board, completion date and stats land in one write or not at all
        try:
            if s.terminal:
                items[keys.LAST_GAME_COMPLETED_DATE] = format_day(today)
                update = self.tracker.stats_update(won, s.tries_used, today)
                items.update(update or {})
            self.store.set_many(items)
        except StoreError as e:
            return self._unsaved(snap, e)

        event_bus.publish({"kind": "guess_scored", "row": s.row - 1, "tiles": out.tiles})
        if s.terminal:
            if update:
                log_stats(update, today)
            event_bus.publish(
                {
                    "kind": "session_terminal",
                    "won": won,
                    "tries": s.tries_used,
                    "completed_at": self.now().isoformat(),
                }
            )
        return out

    def type_guess(self, equation: str) -> Outcome:
        """Clear the current row, type ``equation`` and submit it."""
        today = self._ensure_day()
        blocked = self._guard(today)
        if blocked:
            return blocked
        if len(equation) != EQUATION_LENGTH:
            return Outcome.reject(RejectReason.INCOMPLETE_INPUT, self.session.status)
        bad = [ch for ch in equation if ch not in TOKENS]
        if bad:
            return Outcome.reject(RejectReason.UNSUPPORTED_KEY, self.session.status)
        snap = self.session.snapshot()
        while self.session.col:
            self.session.delete_character()
        for ch in equation:
            self.session.insert_character(ch)
        out = self.submit_guess()
        if not out.accepted:
            self.session.restore(snap)
        return out
