#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

"""Process wide keepalive scheduler.

One daemon thread pings every registered session at its own frequency so
that master tokens do not expire while a session sits idle. Sessions are
held through weak references and a failing heartbeat is logged, it never
stops the thread or affects other sessions.
"""
from __future__ import annotations

import logging
import threading
import time
import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .constants import DEFAULT_HEARTBEAT_FREQUENCY
from .time_util import DEFAULT_MASTER_VALIDITY_IN_SECONDS

if TYPE_CHECKING:  # pragma: no cover
    from .session import Session

logger = logging.getLogger(__name__)


def validate_heartbeat_frequency(
    frequency: int | None, master_validity_in_seconds: int | None
) -> int:
    """Clamps the frequency so the master token is refreshed well before expiry."""
    real_max = int((master_validity_in_seconds or DEFAULT_MASTER_VALIDITY_IN_SECONDS) / 4)
    real_min = int(real_max / 4)

    if frequency is None:
        # This is an unlikely scenario but covering it just in case.
        return max(real_min, 1)
    frequency = int(frequency)
    if frequency > real_max:
        frequency = real_max
    elif frequency < real_min:
        frequency = real_min
    return max(frequency, 1)


@dataclass
class _Registration:
    session_ref: weakref.ref
    interval: int
    next_due: float = field(default=0.0)


class HeartbeatBackground:
    """Schedules heartbeats for all sessions of the process.

    Use ``get_instance`` for the shared scheduler, or build a private one and
    pass it to ``Session`` in tests. The thread starts lazily with the first
    registration and stops on ``shutdown``. With ``autostart=False`` no thread
    is started and heartbeats only run through ``run_pending``.
    """

    _instance: HeartbeatBackground | None = None
    _instance_lock = threading.Lock()

    def __init__(
        self, name: str = "HeartbeatBackground", autostart: bool = True
    ) -> None:
        self._name = name
        self._autostart = autostart
        self._lock = threading.RLock()
        self._cond = threading.Condition(self._lock)
        self._sessions: dict[int, _Registration] = {}
        self._running_key: int | None = None
        self._wakeup = threading.Event()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def get_instance(cls) -> HeartbeatBackground:
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Shuts the shared scheduler down; the next get_instance builds a new one."""
        with cls._instance_lock:
            instance, cls._instance = cls._instance, None
        if instance is not None:
            instance.shutdown()

    def register(
        self,
        session: Session,
        master_validity_in_seconds: int | None,
        frequency: int | None = DEFAULT_HEARTBEAT_FREQUENCY,
    ) -> int:
        """Schedules recurring heartbeats for session and returns the interval used."""
        interval = validate_heartbeat_frequency(frequency, master_validity_in_seconds)
        key = id(session)

        def _forget(_ref: weakref.ref, key: int = key) -> None:
            with self._lock:
                registration = self._sessions.get(key)
                if registration is not None and registration.session_ref is _ref:
                    del self._sessions[key]

        with self._lock:
            if self._stopped.is_set():
                raise RuntimeError(f"{self._name} has been shut down")
            self._sessions[key] = _Registration(
                weakref.ref(session, _forget),
                interval,
                time.monotonic() + interval,
            )
            if self._autostart:
                self._ensure_started()
        self._wakeup.set()
        logger.debug(
            "registered session for heartbeat, master token validity: %s, interval: %s",
            master_validity_in_seconds,
            interval,
        )
        return interval

    def deregister(self, session: Session) -> None:
        """Stops heartbeats for session.

        On return no heartbeat for session is running or will run, unless this
        is called from the heartbeat thread itself.
        """
        key = id(session)
        with self._cond:
            removed = self._sessions.pop(key, None) is not None
            if threading.current_thread() is not self._thread:
                while self._running_key == key:
                    self._cond.wait()
        if removed:
            logger.debug("deregistered session from heartbeat")
        self._wakeup.set()

    def is_registered(self, session: Session) -> bool:
        with self._lock:
            return id(session) in self._sessions

    def interval_for(self, session: Session) -> int | None:
        with self._lock:
            registration = self._sessions.get(id(session))
            return registration.interval if registration else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _ensure_started(self) -> None:
        # caller holds self._lock
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(
                target=self._run, name=self._name, daemon=True
            )
            self._thread.start()

    def _run(self) -> None:
        while not self._stopped.is_set():
            timeout = self.run_pending()
            self._wakeup.wait(timeout)
            self._wakeup.clear()

    def run_pending(self, now: float | None = None) -> float | None:
        """Runs every heartbeat that is due and returns seconds until the next one."""
        with self._lock:
            now = time.monotonic() if now is None else now
            due = [
                key
                for key, registration in self._sessions.items()
                if registration.next_due <= now
            ]
        for key in due:
            self._tick(key)
        with self._lock:
            if not self._sessions:
                return None
            next_due = min(r.next_due for r in self._sessions.values())
        return max(next_due - time.monotonic(), 0.0)

    def _tick(self, key: int) -> None:
        with self._lock:
            registration = self._sessions.get(key)
            if registration is None:
                return
            session = registration.session_ref()
            if session is None:
                del self._sessions[key]
                return
            registration.next_due = time.monotonic() + registration.interval
            self._running_key = key
        try:
            logger.debug("heartbeating!")
            session.heartbeat_tick()
        except Exception as e:
            logger.error("failed to heartbeat: %s", e)
        finally:
            with self._cond:
                self._running_key = None
                self._cond.notify_all()

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stops the thread and forgets every session."""
        self._stopped.set()
        self._wakeup.set()
        with self._lock:
            self._sessions.clear()
            thread = self._thread
        if (
            thread is not None
            and thread.is_alive()
            and thread is not threading.current_thread()
        ):
            thread.join(timeout)
        logger.debug("stopped heartbeat background")
