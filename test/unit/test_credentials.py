#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

from snowflake.session.credentials import CredentialState
from snowflake.session.time_util import DEFAULT_MASTER_VALIDITY_IN_SECONDS


def login(state: CredentialState) -> None:
    state.update_tokens(
        "session_token",
        "master_token",
        master_validity_in_seconds=3600,
        id_token="id_token",
        mfa_token="mfa_token",
    )


def test_update_tokens():
    state = CredentialState()

    login(state)

    snapshot = state.snapshot()
    assert snapshot.session_token == "session_token"
    assert snapshot.master_token == "master_token"
    assert snapshot.id_token == "id_token"
    assert snapshot.mfa_token == "mfa_token"
    assert snapshot.master_validity_in_seconds == 3600


def test_missing_validity_falls_back_to_default():
    state = CredentialState()

    state.update_tokens("session_token", "master_token")

    assert state.master_validity_in_seconds == DEFAULT_MASTER_VALIDITY_IN_SECONDS


def test_replace_if_current_keeps_identity_tokens():
    state = CredentialState()
    login(state)

    assert state.replace_if_current("session_token", "renewed_session", "renewed_master")

    assert state.session_token == "renewed_session"
    assert state.master_token == "renewed_master"
    assert state.id_token == "id_token"
    assert state.mfa_token == "mfa_token"


def test_replace_if_current_without_master_token_keeps_old_one():
    state = CredentialState()
    login(state)

    assert state.replace_if_current("session_token", "renewed_session", None)

    assert state.master_token == "master_token"


def test_replace_if_current_skips_stale_token():
    state = CredentialState()
    login(state)
    state.replace_if_current("session_token", "renewed_session", "renewed_master")

    assert not state.replace_if_current("session_token", "late_session", "late_master")

    assert state.session_token == "renewed_session"
    assert state.is_current("renewed_session")
    assert not state.is_current("session_token")


def test_clear():
    state = CredentialState()
    login(state)

    state.clear()

    assert state.snapshot() == (
        None,
        None,
        None,
        None,
        DEFAULT_MASTER_VALIDITY_IN_SECONDS,
    )


def test_snapshot_repr_hides_tokens():
    state = CredentialState()
    login(state)

    text = repr(state.snapshot())

    assert "session_token=******" in text
    assert "master_token" in text
    assert "id_token=******" in text
    assert "'session_token'" not in text
