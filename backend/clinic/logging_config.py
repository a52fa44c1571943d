import logging
import sys

_HANDLER_NAME = "clinic-stdout"

def setup_logging(level: int | str = logging.INFO) -> None:
    """Install a single stdout handler on the root logger (idempotent)."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(handler)

    # library chatter stays at WARNING even when the app runs at DEBUG
    for noisy in ("psycopg", "psycopg.pool", "cryptography"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
