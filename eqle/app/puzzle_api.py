from __future__ import annotations
import random
from typing import Optional
from fastapi import FastAPI, HTTPException

from eqle.app.puzzle.clock import format_countdown
from eqle.app.puzzle.engine import GameEngine
from eqle.app.puzzle.models import GameView, GuessRequest, KeyRequest, Outcome, StatsView
from eqle.app.puzzle.storage import StoreError, make_store
from eqle_core import config

# ──────────────────────────────────────────────────────────────────────────────
# Config
# ──────────────────────────────────────────────────────────────────────────────
APP_NAME = "eqle"

_ENGINE: Optional[GameEngine] = None


def get_engine() -> GameEngine:
    global _ENGINE
    if _ENGINE is None:
        cfg = config.settings()
        config.configure_logging(cfg["log_level"])
        _ENGINE = GameEngine(
            make_store(cfg["store"]),
            rng=random.Random(),
            attempts=int(cfg["generator"]["attempts"]),
        )
    return _ENGINE


def set_engine(engine: Optional[GameEngine]) -> None:
    global _ENGINE
    _ENGINE = engine


def _run(fn, *args):
    try:
        return fn(*args)
    except StoreError as e:
        raise HTTPException(503, f"state could not be saved: {e}")


# ──────────────────────────────────────────────────────────────────────────────
# FastAPI
# ──────────────────────────────────────────────────────────────────────────────
app = FastAPI(title="Eqle Daily Equation Puzzle", version="0.1.0")


@app.get("/health")
def health():
    return {"ok": True, "service": APP_NAME}


@app.get("/eqle/state", response_model=GameView)
def state():
    return _run(get_engine().current_state)


@app.get("/eqle/can-play")
def can_play():
    return {"can_play_today": _run(get_engine().can_play_today)}


@app.post("/eqle/key", response_model=Outcome)
def press_key(req: KeyRequest):
    return _run(get_engine().insert_character, req.key)


@app.post("/eqle/delete", response_model=Outcome)
def delete_key():
    return _run(get_engine().delete_character)


@app.post("/eqle/submit", response_model=Outcome)
def submit():
    return _run(get_engine().submit_guess)


@app.post("/eqle/guess", response_model=Outcome)
def guess(req: GuessRequest):
    return _run(get_engine().type_guess, req.guess.strip())


@app.get("/eqle/stats", response_model=StatsView)
def stats():
    s = _run(get_engine().stats)
    return StatsView(win_percentage=s.win_percentage, **s.model_dump())


@app.get("/eqle/next")
def next_puzzle():
    left = get_engine().time_until_next_puzzle()
    return {"seconds": int(left.total_seconds()), "countdown": format_countdown(left)}
