"""Logging for helmsman, routed through a rich console on the error stream."""
import logging
import os

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

ROOT = "helmsman"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(name):
    """
    Return a logger below the helmsman root.

    Handlers live on the root logger only (see configure()); module loggers
    just propagate to it.
    """
    if name != ROOT and not name.startswith(ROOT + "."):
        name = f"{ROOT}.{name}"
    return logging.getLogger(name)


def configure(debug=False, /, *, environ=None):
    """
    Install the rich handler on the helmsman root logger and set its level.

    Level precedence: --debug > HELMSMAN_LOG_LEVEL > WARNING. Calling this
    again only adjusts the level; the handler is installed once.
    """
    environ = os.environ if environ is None else environ
    root = logging.getLogger(ROOT)

    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.propagate = False

    if debug:
        level = logging.DEBUG
    else:
        level = _LEVELS.get(environ.get("HELMSMAN_LOG_LEVEL", "").strip().lower(), logging.WARNING)
    root.setLevel(level)
    return root
