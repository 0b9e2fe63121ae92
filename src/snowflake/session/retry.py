#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Event
from typing import Callable, Generic, TypeVar

from .constants import MAX_SESSION_RENEWAL_ATTEMPTS
from .errors import ExpiryRetryExhausted, QueryCanceled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptStatus(Enum):
    OK = "ok"
    EXPIRED = "expired"
    FATAL = "fatal"


@dataclass(frozen=True)
class AttemptResult(Generic[T]):
    """Outcome of one attempt of an operation that may hit an expired session."""

    status: AttemptStatus
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> AttemptResult[T]:
        return cls(AttemptStatus.OK, value=value)

    @classmethod
    def expired(cls) -> AttemptResult[T]:
        return cls(AttemptStatus.EXPIRED)

    @classmethod
    def fatal(cls, error: Exception) -> AttemptResult[T]:
        return cls(AttemptStatus.FATAL, error=error)


def with_expiry_retry(
    operation: Callable[[str | None], AttemptResult[T]],
    get_session_token: Callable[[], str | None],
    renew: Callable[[str | None], None],
    max_renewals: int = MAX_SESSION_RENEWAL_ATTEMPTS,
    cancel_event: Event | None = None,
    name: str = "operation",
) -> T | None:
    """Runs operation, renewing the session and retrying while it reports expiry.

    operation receives the session token observed right before the attempt,
    and renew receives that same token so concurrent renewals of one expired
    token collapse into a single network call. Failures raised by renew
    propagate unchanged.

    Raises:
        ExpiryRetryExhausted: If the session is still reported expired after
            max_renewals renewals.
        QueryCanceled: If cancel_event is set before an attempt or before a
            renewal.
    """
    renewals = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise QueryCanceled(msg=f"{name} was canceled")
        prev_session_token = get_session_token()
        result = operation(prev_session_token)
        if result.status is AttemptStatus.OK:
            return result.value
        if result.status is AttemptStatus.FATAL:
            raise result.error
        if cancel_event is not None and cancel_event.is_set():
            raise QueryCanceled(msg=f"{name} was canceled")
        if renewals >= max_renewals:
            raise ExpiryRetryExhausted(
                msg=f"Session still expired after {renewals} renewals during {name}"
            )
        renewals += 1
        logger.debug(
            "session expired during %s, renewing (attempt %s of %s)",
            name,
            renewals,
            max_renewals,
        )
        renew(prev_session_token)
