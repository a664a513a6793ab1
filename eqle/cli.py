import typer

from eqle.app.puzzle.clock import format_countdown
from eqle.app.puzzle.engine import GameEngine
from eqle.app.puzzle.models import GameView, TileFeedback
from eqle.app.puzzle.storage import StoreError, make_store
from eqle_core import config

app = typer.Typer(help="Eqle: guess the daily equation in six tries")

MARKS = {
    TileFeedback.CORRECT: "🟩",
    TileFeedback.PRESENT: "🟨",
    TileFeedback.ABSENT: "🟥",
    TileFeedback.UNSET: "⬜",
}


def load_engine() -> GameEngine:
    cfg = config.settings()
    config.configure_logging(cfg["log_level"])
    return GameEngine(make_store(cfg["store"]), attempts=int(cfg["generator"]["attempts"]))


def render(view: GameView) -> str:
    lines = []
    for g in view.guesses:
        tiles = "".join(MARKS[t] for t in g.tiles)
        lines.append(f"{g.equation.replace(' ', '.')}  {tiles}")
    lines.append(f"status: {view.status.value}")
    if view.answer:
        lines.append(f"answer: {view.answer}")
    return "\n".join(lines)


@app.command("state")
def show_state():
    print(render(load_engine().current_state()))


@app.command("guess")
def make_guess(equation: str):
    try:
        engine = load_engine()
        out = engine.type_guess(equation.strip())
    except StoreError as e:
        print(f"could not save progress: {e}")
        raise typer.Exit(code=1)
    if not out.accepted:
        print(out.message)
        raise typer.Exit(code=2)
    print(render(engine.current_state()))
    if out.message:
        print(out.message)


@app.command("stats")
def show_stats():
    s = load_engine().stats()
    print(f"played {s.total_played}  win% {s.win_percentage}")
    print(f"streak {s.current_streak}  best {s.best_streak}  fewest tries {s.fewest_tries}")
    for tries, count in enumerate(s.win_distribution, start=1):
        print(f"{tries}: {'#' * count} {count}")


@app.command("next")
def next_puzzle():
    print(f"next puzzle in {format_countdown(load_engine().time_until_next_puzzle())}")


if __name__ == "__main__":
    app()
