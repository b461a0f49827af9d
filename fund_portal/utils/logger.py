import logging, os, sys

ROOT_LOGGER = "fund-portal"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root.setLevel(level)
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(ch)
    return root


def get_logger(name: str | None = None) -> logging.Logger:
    """Component loggers hang under one configured "fund-portal" parent."""
    root = _configure_root()
    if not name:
        return root
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
