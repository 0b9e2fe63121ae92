#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import threading
import time

import pytest

from snowflake.session.errors import (
    ProgrammingError,
    ReauthenticationRequired,
    SessionRenewalFailed,
)
from snowflake.session.login import LoginOutput

from .mock_utils import login_output


def test_renew_session(opened_session, login_client):
    assert opened_session.session_token == "session_token_0"

    opened_session.renew_session("session_token_0")

    assert len(login_client.renew_calls) == 1
    renew_input = login_client.renew_calls[0]
    assert renew_input.session_token == "session_token_0"
    assert renew_input.master_token == "master_token_0"
    assert opened_session.session_token == "session_token_1"
    assert opened_session.master_token == "master_token_1"


def test_renew_session_keeps_identity_tokens(new_session, login_client):
    login_client.output = login_output(id_token="id_token_0", mfa_token="mfa_token_0")
    session = new_session()
    session.open()

    session.renew_session(session.session_token)

    snapshot = session._credentials.snapshot()
    assert snapshot.id_token == "id_token_0"
    assert snapshot.mfa_token == "mfa_token_0"


def test_renew_session_skipped_when_token_already_replaced(opened_session, login_client):
    opened_session.renew_session("session_token_0")
    assert len(login_client.renew_calls) == 1

    # another caller already renewed the token this one saw
    opened_session.renew_session("session_token_0")

    assert len(login_client.renew_calls) == 1
    assert opened_session.session_token == "session_token_1"


def test_concurrent_renewals_collapse_into_one(opened_session, login_client):
    def slow_renew(login_input):
        time.sleep(0.1)
        return LoginOutput(session_token="renewed", master_token="renewed_master")

    login_client.renew_side_effect = slow_renew
    barrier = threading.Barrier(8)
    errors = []

    def renew():
        barrier.wait()
        try:
            opened_session.renew_session("session_token_0")
        except Exception as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=renew) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(login_client.renew_calls) == 1
    assert opened_session.session_token == "renewed"


def test_renew_session_failure_keeps_tokens(opened_session, login_client):
    login_client.renew_side_effect = SessionRenewalFailed(
        msg="failed to renew session", errno=987654
    )

    with pytest.raises(SessionRenewalFailed, match="failed to renew session"):
        opened_session.renew_session("session_token_0")

    assert opened_session.session_token == "session_token_0"
    assert opened_session.master_token == "master_token_0"


def test_renew_session_needs_reauthentication(opened_session, login_client):
    login_client.renew_side_effect = ReauthenticationRequired(
        ProgrammingError(msg="Master token expired", errno=390114)
    )

    with pytest.raises(ReauthenticationRequired) as exc_info:
        opened_session.renew_session("session_token_0")

    assert exc_info.value.errno == 390114
    assert exc_info.value.cause.errno == 390114


def test_reauthentication_reopens_external_browser_session(
    new_session, login_client
):
    session = new_session(authenticator="externalbrowser", password=None)
    session.open()
    login_client.renew_side_effect = ReauthenticationRequired(
        ProgrammingError(msg="Master token expired", errno=390114)
    )
    login_client.output = login_output(session_token="session_token_reopened")

    session._renew_or_reauthenticate("session_token_0")

    assert len(login_client.authenticate_calls) == 2
    assert session.session_token == "session_token_reopened"


def test_reauthentication_required_propagates_for_other_authenticators(
    opened_session, login_client
):
    login_client.renew_side_effect = ReauthenticationRequired(
        ProgrammingError(msg="Master token expired", errno=390114)
    )

    with pytest.raises(ReauthenticationRequired):
        opened_session._renew_or_reauthenticate("session_token_0")

    assert len(login_client.authenticate_calls) == 1
