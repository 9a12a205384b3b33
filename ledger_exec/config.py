"""
Client configuration.

Plain frozen dataclass with defaults, optionally loaded from environment
variables. Every knob has a sane default so ``ClientConfig()`` works.

Environment variables:
    LEDGER_EXEC_REQUEST_TIMEOUT   per-request HTTP timeout (seconds)
    LEDGER_EXEC_BACKOFF_INITIAL   first retry delay (seconds)
    LEDGER_EXEC_BACKOFF_FACTOR    growth factor per retry
    LEDGER_EXEC_BACKOFF_MAX       cap on any single retry delay (seconds)
    LEDGER_EXEC_EXECUTE_TIMEOUT   overall deadline per call (seconds, unset = none)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from ledger_exec.backoff import (
    DEFAULT_FACTOR,
    DEFAULT_INITIAL_DELAY,
    DEFAULT_MAX_DELAY,
    ExponentialBackoff,
)

ENV_PREFIX = "LEDGER_EXEC_"


@dataclass(frozen=True)
class ClientConfig:
    request_timeout: float = 30.0
    backoff_initial: float = DEFAULT_INITIAL_DELAY
    backoff_factor: float = DEFAULT_FACTOR
    backoff_max: float = DEFAULT_MAX_DELAY
    execute_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise ValueError(
                f"request_timeout must be > 0, got: {self.request_timeout}"
            )
        if self.execute_timeout is not None and self.execute_timeout <= 0:
            raise ValueError(
                f"execute_timeout must be > 0 when set, got: {self.execute_timeout}"
            )
        try:
            self.backoff()
        except ValueError as e:
            raise ValueError(f"invalid backoff settings: {e}") from e

    def backoff(self) -> ExponentialBackoff:
        return ExponentialBackoff(
            initial=self.backoff_initial,
            factor=self.backoff_factor,
            maximum=self.backoff_max,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ``LEDGER_EXEC_*`` variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set but not a valid number.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            request_timeout=_float_env(env, "REQUEST_TIMEOUT", defaults.request_timeout),
            backoff_initial=_float_env(env, "BACKOFF_INITIAL", defaults.backoff_initial),
            backoff_factor=_float_env(env, "BACKOFF_FACTOR", defaults.backoff_factor),
            backoff_max=_float_env(env, "BACKOFF_MAX", defaults.backoff_max),
            execute_timeout=_float_env(env, "EXECUTE_TIMEOUT", defaults.execute_timeout),
        )


def _float_env(
    env: Mapping[str, str], name: str, default: float | None
) -> float | None:
    key = ENV_PREFIX + name
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got: {raw!r}") from None
