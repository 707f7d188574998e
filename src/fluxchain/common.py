"""
Shared utilities - logging wrapper, engine configuration and naming helpers
"""

import logging
from typing import Optional, Any, Callable
from dataclasses import dataclass


DEFAULT_LOGGER_NAME = "fluxchain"

# Glue continuations created by the compositions themselves; they never show
# up in user-facing traces.
HIDDEN_NAMES = frozenset({
    "_after_glue",
    "_chain_inner",
    "_resume",
    "_finish",
    "_loop_check",
    "_loop_select",
    "_branch_select",
    "_parallel_terminator",
})


@dataclass
class EngineConfig:
    """Engine configuration for the run entry points"""
    max_ticks: Optional[int] = None       # upper bound on scheduler entries per run (None = unbounded)
    logger_name: str = DEFAULT_LOGGER_NAME
    log_level: int = logging.INFO

    def __post_init__(self):
        """Validate configuration values"""
        if self.max_ticks is not None and self.max_ticks <= 0:
            raise ValueError("max_ticks must be greater than 0")
        if not self.logger_name:
            raise ValueError("logger_name must not be empty")


class FlowLogger:
    """Thin wrapper around a logging.Logger used as the environment's sink"""

    def __init__(self, logger: Optional[logging.Logger] = None, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.logger = logger or self._create_default_logger()

    def _create_default_logger(self) -> logging.Logger:
        logger = logging.getLogger(self.config.logger_name)
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(self.config.log_level)
        return logger

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)


def callable_name(fn: Any, default: str = "(anonymous)") -> str:
    """
    Display name for a step, composition or plain callable.

    Compositions and step descriptors carry a ``name``; functions fall back
    to ``__name__``. Lambdas and nameless callables get ``default``.
    """
    name = getattr(fn, "name", None)
    if isinstance(name, str) and name:
        return name
    name = getattr(fn, "__name__", None)
    if not name or name == "<lambda>":
        return default
    return name


def is_hidden(name: str) -> bool:
    """True for internal glue names that are kept out of traces."""
    return name in HIDDEN_NAMES


def _finish(*args: Any) -> None:
    """Default terminal continuation."""


def resolve_after(after: Optional[Callable[..., Any]]) -> Callable[..., Any]:
    return _finish if after is None else after
