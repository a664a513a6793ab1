import logging

logger = logging.getLogger(__name__)

handlers = {}


def subscribe(event_kind, fn):
    handlers.setdefault(event_kind, []).append(fn)


def unsubscribe(event_kind, fn):
    if fn in handlers.get(event_kind, []):
        handlers[event_kind].remove(fn)


def publish(ev):
    for fn in list(handlers.get(ev.get("kind"), [])):
        try:
            fn(ev)
        except Exception:
            logger.exception("handler error for %s", ev.get("kind"))
