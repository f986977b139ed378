"""
Per-(command, user) cooldown ledger.

An entry is created when a command with a cooldown completes successfully and
is removed once its cooldown has elapsed, either when a check notices the
expiry or when the one-shot timer armed by :meth:`CooldownTracker.mark_used`
fires. Timers need a running asyncio loop; without one only the passive expiry
applies.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional, Tuple

from lucybot.util.logger import get_logger

logger = get_logger("cooldowns")

CooldownKey = Tuple[str, Hashable]


def epoch_ms() -> float:
    return time.time() * 1000


@dataclass
class CooldownEntry:
    last_used: float
    cooldown_ms: int

    @property
    def expires_at(self) -> float:
        return self.last_used + self.cooldown_ms


class CooldownTracker:
    """Track when each user last ran each command.

    Args:
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(self, clock: Callable[[], float] = epoch_ms) -> None:
        self._clock = clock
        self._entries: Dict[CooldownKey, CooldownEntry] = {}
        self._timers: Dict[CooldownKey, asyncio.TimerHandle] = {}

    def now(self) -> float:
        return self._clock()

    def _active_entry(self, name: str, user_id: Hashable) -> Optional[CooldownEntry]:
        key = (name, user_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.last_used >= entry.cooldown_ms:
            self._remove(key)
            return None
        return entry

    def is_on_cooldown(self, name: str, user_id: Hashable) -> bool:
        return self._active_entry(name, user_id) is not None

    def remaining_seconds(self, name: str, user_id: Hashable) -> int:
        """Whole seconds left, rounded up; 0 when not on cooldown."""
        entry = self._active_entry(name, user_id)
        if entry is None:
            return 0
        return math.ceil((entry.cooldown_ms - (self._clock() - entry.last_used)) / 1000)

    def mark_used(self, name: str, user_id: Hashable, cooldown_ms: int) -> None:
        """Start or refresh the cooldown of ``name`` for ``user_id``."""
        if cooldown_ms <= 0:
            return

        key = (name, user_id)
        self._cancel_timer(key)
        self._entries[key] = CooldownEntry(last_used=self._clock(), cooldown_ms=int(cooldown_ms))

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[key] = loop.call_later(cooldown_ms / 1000, self._expire, key)

    def _expire(self, key: CooldownKey) -> None:
        self._timers.pop(key, None)
        self._entries.pop(key, None)

    def _cancel_timer(self, key: CooldownKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def _remove(self, key: CooldownKey) -> None:
        self._cancel_timer(key)
        self._entries.pop(key, None)

    def clear_for_user(self, user_id: Hashable) -> int:
        keys = [key for key in self._entries if key[1] == user_id]
        for key in keys:
            self._remove(key)
        logger.debug("[COOLDOWNS] Cleared %d cooldowns for user %s", len(keys), user_id)
        return len(keys)

    def clear_for_command(self, name: str) -> int:
        keys = [key for key in self._entries if key[0] == name]
        for key in keys:
            self._remove(key)
        logger.debug("[COOLDOWNS] Cleared %d cooldowns for command %s", len(keys), name)
        return len(keys)

    def clear(self) -> None:
        """Drop every entry and cancel every pending timer."""
        for key in list(self._entries):
            self._remove(key)

    def info(self) -> Dict[str, Dict[Hashable, Dict[str, float]]]:
        """Snapshot grouped by command: ``{command: {user: {last_used, expires_at}}}``."""
        snapshot: Dict[str, Dict[Hashable, Dict[str, float]]] = {}
        for (name, user_id), entry in self._entries.items():
            snapshot.setdefault(name, {})[user_id] = {
                "last_used": entry.last_used,
                "expires_at": entry.expires_at,
            }
        return snapshot

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
