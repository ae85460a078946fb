"""
Shared helpers.
"""
import logging
import sys

from single_role.core import config


_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root = logging.getLogger("single_role")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Return a module logger living under the ``single_role`` hierarchy.

    Usage:
        log = get_logger(__name__)
        log.info("Attached %s permissions", count)
    """
    _configure_root()
    if name == "__main__" or not name.startswith("single_role"):
        name = f"single_role.{name}"
    return logging.getLogger(name)
