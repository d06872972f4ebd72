"""Client-side guard against repeated attempts of an action (e.g. login).

Attempts are timestamped (milliseconds) and counted over a sliding window.
Once the window holds ``max_attempts`` entries the next :meth:`check_limit`
starts a timed lockout. State is written through to a
:class:`~utils.key_value_store.KeyValueStore` so a lockout survives restarts.

Instances are meant for one in-flight attempt per storage key; callers that
need concurrent attempts against the same key must serialise them.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from utils.key_value_store import InMemoryKeyValueStore, KeyValueStore
from utils.messages import translate
from utils.persistence import LimiterStateModel, parse_limiter_state

logger = logging.getLogger(__name__)

TimeProvider = Callable[[], float]


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


def _ceil_seconds(milliseconds: float) -> int:
    return math.ceil(max(0.0, milliseconds) / 1000.0)


@dataclass(frozen=True)
class LimiterConfig:
    """Limiter policy. Durations are in milliseconds."""

    max_attempts: int = 5
    window_ms: int = 60000
    lockout_ms: int = 30000
    storage_key: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("max_attempts", "window_ms", "lockout_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_settings(
        cls, storage_key: Optional[str] = None, *, source: Any = None
    ) -> "LimiterConfig":
        """Build a config from the ``rate_limit_*`` attributes of *source*."""

        if source is None:
            from config.config import settings as source

        return cls(
            max_attempts=int(source.rate_limit_max_attempts),
            window_ms=int(source.rate_limit_window_ms),
            lockout_ms=int(source.rate_limit_lockout_ms),
            storage_key=storage_key,
        )


@dataclass(frozen=True)
class LimitCheck:
    """Outcome of :meth:`AttemptLimiter.check_limit`."""

    allowed: bool
    remaining_attempts: int
    message: Optional[str]
    is_locked: bool
    remaining_seconds: int


@dataclass(frozen=True)
class LimiterStatus:
    """Read-only snapshot returned by :meth:`AttemptLimiter.get_status`."""

    current_attempts: int
    max_attempts: int
    remaining_attempts: int
    is_locked: bool
    remaining_lockout_seconds: int


class AttemptLimiter:
    """Sliding-window attempt counter with a timed lockout."""

    def __init__(
        self,
        config: Optional[LimiterConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        time_provider: TimeProvider = _wall_clock_ms,
        tick_interval: float = 1.0,
        on_tick: Optional[Callable[[int], None]] = None,
        locale: Optional[str] = None,
    ) -> None:
        if tick_interval <= 0:
            raise ValueError("tick_interval must be greater than zero")

        self.config = config or LimiterConfig()
        self.store = store if store is not None else InMemoryKeyValueStore()
        self.tick_interval = tick_interval
        self.on_tick = on_tick
        self.locale = locale
        self._now = time_provider
        self._timer: Optional[asyncio.Task[None]] = None
        self._attempts: List[float] = []
        self._lockout_end_time: Optional[float] = None

        self._restore()
        if self._lockout_end_time is not None:
            self._start_countdown()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------
    def check_limit(self) -> LimitCheck:
        """Return whether an attempt may proceed.

        Not a pure query: when the window is already full this call starts
        the lockout. Recording an attempt never does.
        """

        now = self._now()
        self._expire_lockout_if_due(now)

        if self._lockout_end_time is not None:
            seconds = _ceil_seconds(self._lockout_end_time - now)
            return LimitCheck(
                allowed=False,
                remaining_attempts=0,
                message=translate("limiter.locked", self.locale, seconds=seconds),
                is_locked=True,
                remaining_seconds=seconds,
            )

        recent = self._recent(now)
        if len(recent) >= self.config.max_attempts:
            self._lockout_end_time = now + self.config.lockout_ms
            logger.warning(
                "Attempt limit reached; starting lockout",
                extra={
                    "storage_key": self.storage_key,
                    "attempts": len(recent),
                    "lockout_ms": self.config.lockout_ms,
                },
            )
            self._persist()
            self._start_countdown()
            seconds = _ceil_seconds(self.config.lockout_ms)
            return LimitCheck(
                allowed=False,
                remaining_attempts=0,
                message=translate("limiter.lockout_started", self.locale, seconds=seconds),
                is_locked=True,
                remaining_seconds=seconds,
            )

        remaining = self.config.max_attempts - len(recent)
        message = None
        if remaining <= 2:
            message = translate("limiter.low_attempts", self.locale, remaining=remaining)
        return LimitCheck(
            allowed=True,
            remaining_attempts=remaining,
            message=message,
            is_locked=False,
            remaining_seconds=0,
        )

    def record_attempt(self) -> None:
        """Count one attempt at the current time."""

        now = self._now()
        self._expire_lockout_if_due(now)
        if self._lockout_end_time is not None:
            logger.debug(
                "Ignoring attempt recorded during lockout",
                extra={"storage_key": self.storage_key},
            )
            return

        self._attempts = self._recent(now) + [now]
        self._persist()

    def record_success(self) -> None:
        """Forget all attempts and any lockout after a successful action."""

        self._clear()

    def reset(self) -> None:
        """Manually clear the limiter, regardless of the last outcome."""

        self._clear()

    def get_status(self) -> LimiterStatus:
        """Describe the current state without starting or ending a lockout."""

        now = self._now()
        remaining_ms = self._remaining_ms(now)
        expired = self._lockout_end_time is not None and remaining_ms <= 0
        current = 0 if expired else len(self._recent(now))
        return LimiterStatus(
            current_attempts=current,
            max_attempts=self.config.max_attempts,
            remaining_attempts=max(0, self.config.max_attempts - current),
            is_locked=remaining_ms > 0,
            remaining_lockout_seconds=_ceil_seconds(remaining_ms),
        )

    def dispose(self) -> None:
        """Cancel the countdown task. Reads keep working afterwards."""

        self._cancel_countdown()

    def __enter__(self) -> "AttemptLimiter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------
    @property
    def storage_key(self) -> Optional[str]:
        return self.config.storage_key

    @property
    def is_locked(self) -> bool:
        return self._remaining_ms(self._now()) > 0

    @property
    def remaining_time(self) -> float:
        """Milliseconds left in the current lockout (``0`` when unlocked)."""

        return self._remaining_ms(self._now())

    @property
    def remaining_seconds(self) -> int:
        return _ceil_seconds(self.remaining_time)

    @property
    def lockout_end_time(self) -> Optional[float]:
        return self._lockout_end_time

    @property
    def attempts(self) -> Tuple[float, ...]:
        return tuple(self._attempts)

    @property
    def countdown_active(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _recent(self, now: float) -> List[float]:
        window = self.config.window_ms
        return [stamp for stamp in self._attempts if now - stamp < window]

    def _remaining_ms(self, now: float) -> float:
        if self._lockout_end_time is None:
            return 0.0
        return max(0.0, self._lockout_end_time - now)

    def _expire_lockout_if_due(self, now: float) -> bool:
        if self._lockout_end_time is None or now < self._lockout_end_time:
            return False

        logger.info("Lockout ended", extra={"storage_key": self.storage_key})
        self._lockout_end_time = None
        # A fresh window starts once the penalty has been served.
        self._attempts = []
        self._cancel_countdown()
        self._persist()
        return True

    def _clear(self) -> None:
        self._attempts = []
        self._lockout_end_time = None
        self._cancel_countdown()
        self._remove_persisted()

    def _restore(self) -> None:
        state = self._load_state()
        now = self._now()
        window = self.config.window_ms
        end = state.lockout_end_time

        if end is not None and end > now:
            self._lockout_end_time = end
            self._attempts = [s for s in state.attempts if now - s < window]
        elif end is not None:
            # Lockout lapsed while the state was at rest.
            self._attempts = []
        else:
            self._attempts = [s for s in state.attempts if now - s < window]

    def _load_state(self) -> LimiterStateModel:
        key = self.storage_key
        if not key:
            return LimiterStateModel()
        try:
            return parse_limiter_state(self.store.get(key))
        except Exception:
            logger.warning("Error loading rate limiter state for %s", key, exc_info=True)
            return LimiterStateModel()

    def _persist(self) -> None:
        key = self.storage_key
        if not key:
            return
        snapshot = LimiterStateModel(
            attempts=list(self._attempts), lockout_end_time=self._lockout_end_time
        )
        try:
            self.store.set(key, snapshot.to_json())
        except Exception:
            logger.warning("Error saving rate limiter state for %s", key, exc_info=True)

    def _remove_persisted(self) -> None:
        key = self.storage_key
        if not key:
            return
        try:
            self.store.remove(key)
        except Exception:
            logger.warning("Error removing rate limiter state for %s", key, exc_info=True)

    # ------------------------------------------------------------------
    # Countdown
    # ------------------------------------------------------------------
    def _start_countdown(self) -> None:
        if self.countdown_active:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "No running event loop; lockout for %s expires on next check",
                self.storage_key,
            )
            return
        self._timer = loop.create_task(self._run_countdown())

    def _cancel_countdown(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None or timer.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # The countdown ends itself by returning, not by cancellation.
        if timer is not current:
            timer.cancel()

    async def _run_countdown(self) -> None:
        while self._tick() > 0:
            await asyncio.sleep(self.tick_interval)

    def _tick(self) -> float:
        now = self._now()
        remaining = self._remaining_ms(now)
        if self.on_tick is not None and self._lockout_end_time is not None:
            try:
                self.on_tick(_ceil_seconds(remaining))
            except Exception:
                logger.exception("Lockout countdown callback failed")
        if remaining <= 0:
            self._expire_lockout_if_due(now)
        return remaining


__all__ = ["AttemptLimiter", "LimitCheck", "LimiterConfig", "LimiterStatus"]
