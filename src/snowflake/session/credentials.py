#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
from threading import Lock
from typing import NamedTuple

from .time_util import DEFAULT_MASTER_VALIDITY_IN_SECONDS

logger = logging.getLogger(__name__)


class CredentialSnapshot(NamedTuple):
    """A consistent read of all the tokens at one point in time."""

    session_token: str | None = None
    master_token: str | None = None
    id_token: str | None = None
    mfa_token: str | None = None
    master_validity_in_seconds: int = DEFAULT_MASTER_VALIDITY_IN_SECONDS

    def __repr__(self) -> str:
        return (
            "CredentialSnapshot("
            f"session_token={'******' if self.session_token else None}, "
            f"master_token={'******' if self.master_token else None}, "
            f"id_token={'******' if self.id_token else None}, "
            f"mfa_token={'******' if self.mfa_token else None}, "
            f"master_validity_in_seconds={self.master_validity_in_seconds})"
        )


class CredentialState:
    """Tokens owned by one session.

    Only two paths mutate the tokens: a login stores the full set through
    ``update_tokens`` and a renewal replaces the session and master tokens
    through ``replace_if_current``. The ``lock`` attribute is the per session
    mutual exclusion region that renewal holds across its check, the network
    call and the replacement.
    """

    def __init__(self) -> None:
        self._lock_token = Lock()
        # held by renewal across the whole check-then-mutate sequence
        self.lock = Lock()
        self._session_token: str | None = None
        self._master_token: str | None = None
        self._id_token: str | None = None
        self._mfa_token: str | None = None
        self._master_validity_in_seconds = DEFAULT_MASTER_VALIDITY_IN_SECONDS

    @property
    def session_token(self) -> str | None:
        return self._session_token

    @property
    def master_token(self) -> str | None:
        return self._master_token

    @property
    def id_token(self) -> str | None:
        return self._id_token

    @property
    def mfa_token(self) -> str | None:
        return self._mfa_token

    @property
    def master_validity_in_seconds(self) -> int:
        return self._master_validity_in_seconds

    def snapshot(self) -> CredentialSnapshot:
        with self._lock_token:
            return CredentialSnapshot(
                self._session_token,
                self._master_token,
                self._id_token,
                self._mfa_token,
                self._master_validity_in_seconds,
            )

    def update_tokens(
        self,
        session_token: str | None,
        master_token: str | None,
        master_validity_in_seconds: int | None = None,
        id_token: str | None = None,
        mfa_token: str | None = None,
    ) -> None:
        """Updates session and master tokens and optionally temporary tokens."""
        with self._lock_token:
            self._session_token = session_token
            self._master_token = master_token
            self._id_token = id_token
            self._mfa_token = mfa_token
            self._master_validity_in_seconds = (
                master_validity_in_seconds or DEFAULT_MASTER_VALIDITY_IN_SECONDS
            )
        logger.debug(
            "updated tokens. session token: %s, master token: %s, "
            "master validity: %s",
            "******" if session_token else None,
            "******" if master_token else None,
            self._master_validity_in_seconds,
        )

    def replace_if_current(
        self,
        prev_session_token: str | None,
        session_token: str,
        master_token: str | None,
    ) -> bool:
        """Swaps in renewed tokens unless someone else already replaced them.

        The identity and MFA tokens are not touched. Returns whether the swap
        happened.
        """
        with self._lock_token:
            if self._session_token != prev_session_token:
                return False
            self._session_token = session_token
            if master_token:
                self._master_token = master_token
            return True

    def is_current(self, prev_session_token: str | None) -> bool:
        return self._session_token == prev_session_token

    def clear(self) -> None:
        with self._lock_token:
            self._session_token = None
            self._master_token = None
            self._id_token = None
            self._mfa_token = None
            self._master_validity_in_seconds = DEFAULT_MASTER_VALIDITY_IN_SECONDS
