#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from snowflake.session.errors import (
    ExpiryRetryExhausted,
    HeartbeatFailed,
    QueryCanceled,
    SessionRenewalFailed,
)
from snowflake.session.retry import AttemptResult, with_expiry_retry


class Tokens:
    def __init__(self) -> None:
        self.generation = 0

    def current(self) -> str:
        return f"token_{self.generation}"

    def renew(self, prev_session_token: str) -> None:
        if prev_session_token == self.current():
            self.generation += 1


def test_ok_on_first_attempt():
    tokens = Tokens()
    renew = MagicMock(side_effect=tokens.renew)

    result = with_expiry_retry(
        lambda token: AttemptResult.ok(token), tokens.current, renew
    )

    assert result == "token_0"
    renew.assert_not_called()


def test_renews_and_retries_with_new_token():
    tokens = Tokens()
    seen = []

    def operation(token):
        seen.append(token)
        if token == "token_0":
            return AttemptResult.expired()
        return AttemptResult.ok("done")

    assert with_expiry_retry(operation, tokens.current, tokens.renew) == "done"
    assert seen == ["token_0", "token_1"]


def test_renew_receives_token_observed_by_attempt():
    tokens = Tokens()
    renew = MagicMock(side_effect=tokens.renew)
    results = iter([AttemptResult.expired(), AttemptResult.ok()])

    with_expiry_retry(lambda token: next(results), tokens.current, renew)

    renew.assert_called_once_with("token_0")


def test_fatal_error_is_raised_without_renewal():
    tokens = Tokens()
    renew = MagicMock(side_effect=tokens.renew)
    error = HeartbeatFailed(msg="denied")

    with pytest.raises(HeartbeatFailed) as exc_info:
        with_expiry_retry(lambda token: AttemptResult.fatal(error), tokens.current, renew)

    assert exc_info.value is error
    renew.assert_not_called()


def test_renewal_failure_propagates():
    renew = MagicMock(side_effect=SessionRenewalFailed(msg="master token expired"))

    with pytest.raises(SessionRenewalFailed, match="master token expired"):
        with_expiry_retry(lambda token: AttemptResult.expired(), lambda: "t", renew)


@pytest.mark.parametrize("max_renewals", [0, 1, 3])
def test_renewals_are_bounded(max_renewals):
    tokens = Tokens()
    renew = MagicMock(side_effect=tokens.renew)

    with pytest.raises(ExpiryRetryExhausted):
        with_expiry_retry(
            lambda token: AttemptResult.expired(),
            tokens.current,
            renew,
            max_renewals=max_renewals,
        )

    assert renew.call_count == max_renewals


def test_cancel_event_stops_retrying():
    cancel_event = threading.Event()
    operation = MagicMock(return_value=AttemptResult.expired())

    def renew(token):
        cancel_event.set()

    with pytest.raises(QueryCanceled, match="heartbeat was canceled"):
        with_expiry_retry(
            operation, lambda: "t", renew, cancel_event=cancel_event, name="heartbeat"
        )

    operation.assert_called_once()


def test_cancel_during_attempt_skips_renewal():
    cancel_event = threading.Event()
    renew = MagicMock()

    def operation(token):
        cancel_event.set()
        return AttemptResult.expired()

    with pytest.raises(QueryCanceled):
        with_expiry_retry(operation, lambda: "t", renew, cancel_event=cancel_event)

    renew.assert_not_called()
