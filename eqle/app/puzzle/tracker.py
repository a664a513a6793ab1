from __future__ import annotations
import datetime as dt
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from eqle.app.puzzle import storage as keys
from eqle.app.puzzle.clock import days_between, format_day, parse_day
from eqle.app.puzzle.logic import is_valid_equation
from eqle.app.puzzle.models import MAX_GUESSES, Stats

logger = logging.getLogger(__name__)


def _int(v: Any, default: int) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        return default
    return v


def _distribution(v: Any) -> List[int]:
    if not isinstance(v, list) or len(v) != MAX_GUESSES:
        return [0] * MAX_GUESSES
    return [_int(x, 0) for x in v]


def load_stats(store, strict: bool = False) -> Stats:
    """Stats from the store; missing or corrupt fields fall back to defaults.

    With ``strict`` a failed read raises StoreError instead of defaulting.
    """
    get = store.read if strict else store.get
    fewest = _int(get(keys.FEWEST_TRIES), MAX_GUESSES)
    return Stats(
        total_played=_int(get(keys.TOTAL_GAMES_PLAYED), 0),
        total_won=_int(get(keys.TOTAL_GAMES_WON), 0),
        win_distribution=_distribution(get(keys.WIN_DISTRIBUTION)),
        current_streak=_int(get(keys.CURRENT_STREAK), 0),
        best_streak=_int(get(keys.BEST_STREAK), 0),
        fewest_tries=fewest if 1 <= fewest <= MAX_GUESSES else MAX_GUESSES,
    )


class DailyGate:
    def __init__(self, store):
        self.store = store

    def can_play_today(self, today: dt.date) -> bool:
        return parse_day(self.store.get(keys.LAST_GAME_COMPLETED_DATE)) != today

    def todays_answer(self, today: dt.date, generate: Callable[[], str]) -> Tuple[str, bool]:
        """Cached answer for ``today``, generating one when the cache is stale.

        Returns ``(answer, fresh)``; ``fresh`` means the session must restart.
        """
        cached = self.store.get(keys.DAILY_EQUATION)
        cached_day = parse_day(self.store.get(keys.LAST_EQUATION_DATE))
        if cached_day == today and isinstance(cached, str) and is_valid_equation(cached):
            return cached, False
        answer = generate()
        logger.info("new equation generated for %s", today)
        logger.debug("answer for %s is %s", today, answer)
        self.store.set_many(
            {keys.DAILY_EQUATION: answer, keys.LAST_EQUATION_DATE: format_day(today)}
        )
        if cached_day != today:
            self.store.remove_many([keys.LAST_GAME_COMPLETED_DATE, *keys.SESSION_KEYS])
        return answer, True


class StreakTracker:
    def __init__(self, store):
        self.store = store

    def stats(self) -> Stats:
        return load_stats(self.store)

    def stats_update(self, won: bool, tries_used: int, today: dt.date) -> Optional[Dict[str, Any]]:
        """Store items that fold one finished session into the lifetime stats.

        Returns None when stats were already updated for ``today``. Reads are
        strict: a store that cannot answer raises StoreError rather than
        letting defaults overwrite the saved counters.
        """
        if parse_day(self.store.read(keys.LAST_STATS_UPDATE)) == today:
            logger.debug("stats already updated for %s, skipping", today)
            return None

        stats = load_stats(self.store, strict=True)
        first_win = stats.total_won == 0
        stats.total_played += 1
        if won:
            stats.total_won += 1
            if 1 <= tries_used <= MAX_GUESSES:
                stats.win_distribution[tries_used - 1] += 1
            if first_win or tries_used < stats.fewest_tries:
                stats.fewest_tries = tries_used

        last_win = parse_day(self.store.read(keys.LAST_WIN_DATE))
        if last_win is None:
            stats.current_streak = 1 if won else 0
        else:
            gap = days_between(last_win, today)
            if gap == 1:
                stats.current_streak = stats.current_streak + 1 if won else 0
            elif gap > 1:
                stats.current_streak = 1 if won else 0
        stats.best_streak = max(stats.best_streak, stats.current_streak)

        update = {
            keys.TOTAL_GAMES_PLAYED: stats.total_played,
            keys.TOTAL_GAMES_WON: stats.total_won,
            keys.WIN_DISTRIBUTION: stats.win_distribution,
            keys.CURRENT_STREAK: stats.current_streak,
            keys.BEST_STREAK: stats.best_streak,
            keys.FEWEST_TRIES: stats.fewest_tries,
            keys.LAST_STATS_UPDATE: format_day(today),
        }
        if won:
            update[keys.LAST_WIN_DATE] = format_day(today)
        return update

    def on_session_terminal(self, won: bool, tries_used: int, today: dt.date) -> bool:
        """Fold one finished session into the lifetime stats.

        Returns False when stats were already updated for ``today``.
        """
        update = self.stats_update(won, tries_used, today)
        if update is None:
            return False
        self.store.set_many(update)
        log_stats(update, today)
        return True


def log_stats(update: Dict[str, Any], today: dt.date) -> None:
    logger.info(
        "stats updated for %s: played=%d won=%d streak=%d",
        today,
        update[keys.TOTAL_GAMES_PLAYED],
        update[keys.TOTAL_GAMES_WON],
        update[keys.CURRENT_STREAK],
    )
