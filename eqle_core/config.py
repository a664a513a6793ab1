import logging
import os

import yaml

DEFAULTS = {
    "store": {"backend": "json", "path": "out/eqle_state.json", "dsn": None},
    "generator": {"attempts": 100},
    "log_level": "INFO",
}


def load(path=None):
    path = path or os.getenv("EQLE_CONFIG", "content/eqle.yaml")
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def settings(path=None):
    raw = load(path)
    store = dict(DEFAULTS["store"], **(raw.get("store") or {}))
    generator = dict(DEFAULTS["generator"], **(raw.get("generator") or {}))
    store["backend"] = os.getenv("EQLE_STORE", store["backend"])
    store["path"] = os.getenv("EQLE_STATE_PATH", store["path"])
    store["dsn"] = os.getenv("PG_DSN", store["dsn"])
    return {
        "store": store,
        "generator": generator,
        "log_level": os.getenv("EQLE_LOG_LEVEL", raw.get("log_level") or DEFAULTS["log_level"]),
    }


def configure_logging(level="INFO"):
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(str(level).upper())
