#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
from unittest import mock

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from snowflake.session.constants import MAX_SESSION_PARAMETERS
from snowflake.session.errors import (
    DuplicateProperty,
    InvalidPropertyType,
    InvalidProxyProperties,
    MissingConnectionProperty,
    MissingPassword,
    MissingServerURL,
    MissingUsername,
    TooManyProperties,
)
from snowflake.session.properties import (
    SessionConfig,
    check_property_value,
    lookup_property,
    requires_user_and_password,
    resolve_authenticator,
)
from snowflake.session.transport import is_socks_proxy_disabled


def test_lookup_property_is_case_insensitive():
    assert lookup_property("LOGIN_TIMEOUT") == "login_timeout"
    assert lookup_property("Database") == "database"
    assert lookup_property("QUERY_TAG") is None


@pytest.mark.parametrize(
    "name,value,expected",
    [
        ("login_timeout", "30", 30),
        ("login_timeout", 30, 30),
        ("client_session_keep_alive", "true", True),
        ("client_session_keep_alive", "OFF", False),
        ("client_session_keep_alive", 1, True),
        ("passcode_in_password", "yes", True),
        ("database", 42, "42"),
        ("database", None, None),
    ],
)
def test_check_property_value(name, value, expected):
    assert check_property_value(name, value) == expected


@pytest.mark.parametrize(
    "name,value",
    [
        ("login_timeout", "thirty"),
        ("login_timeout", True),
        ("client_session_keep_alive", "maybe"),
        ("proxy_port", 1.5),
        ("database", ["db"]),
    ],
)
def test_check_property_value_rejects_wrong_types(name, value):
    with pytest.raises(InvalidPropertyType, match=name):
        check_property_value(name, value)


@pytest.mark.parametrize(
    "authenticator,has_private_key,expected",
    [
        (None, False, "SNOWFLAKE"),
        (None, True, "SNOWFLAKE_JWT"),
        ("externalbrowser", False, "EXTERNALBROWSER"),
        ("oauth", False, "OAUTH"),
        (
            "https://testaccount.okta.com/",
            False,
            "https://testaccount.okta.com/",
        ),
    ],
)
def test_resolve_authenticator(authenticator, has_private_key, expected):
    assert resolve_authenticator(authenticator, has_private_key) == expected


def test_requires_user_and_password():
    assert requires_user_and_password("SNOWFLAKE")
    assert requires_user_and_password("USERNAME_PASSWORD_MFA")
    assert requires_user_and_password("https://testaccount.okta.com/")
    assert not requires_user_and_password("EXTERNALBROWSER")
    assert not requires_user_and_password("SNOWFLAKE_JWT")
    assert not requires_user_and_password("OAUTH")


def test_recognized_property_takes_effect(new_session):
    session = new_session(login_timeout="30", network_timeout=120)

    assert session.login_timeout == 30
    assert session.network_timeout == 120
    assert session.connection_properties["login_timeout"] == 30


def test_injected_delays_are_stored(new_session):
    session = new_session(inject_client_pause=5, inject_socket_timeout="7")

    assert session.inject_client_pause == 5
    assert session.inject_socket_timeout == 7


def test_injected_delay_sleeps_once(new_session):
    session = new_session(inject_client_pause=250)

    with mock.patch("snowflake.session.session.time.sleep") as sleep:
        session.injected_delay()
        session.injected_delay()

    sleep.assert_called_once_with(0.25)
    assert session.inject_client_pause == 0


def test_unknown_property_becomes_session_parameter(new_session):
    session = new_session(QUERY_TAG="nightly", TIMEZONE="UTC")

    assert session.session_parameters == {"QUERY_TAG": "nightly", "TIMEZONE": "UTC"}
    assert "query_tag" not in session.connection_properties


def test_duplicate_property(new_session):
    session = new_session()

    with pytest.raises(DuplicateProperty, match="login_timeout"):
        session.set_property("LOGIN_TIMEOUT", 10)
        session.set_property("login_timeout", 20)

    assert session.login_timeout == 10


def test_duplicate_session_parameter(new_session):
    session = new_session(QUERY_TAG="first")

    with pytest.raises(DuplicateProperty):
        session.set_property("QUERY_TAG", "second")

    assert session.session_parameters["QUERY_TAG"] == "first"


def test_too_many_session_parameters(new_session):
    session = new_session()
    for i in range(MAX_SESSION_PARAMETERS):
        session.set_property(f"PARAM_{i}", i)

    with pytest.raises(TooManyProperties):
        session.set_property("ONE_TOO_MANY", 1)

    assert len(session.session_parameters) == MAX_SESSION_PARAMETERS
    assert "ONE_TOO_MANY" not in session.session_parameters


def test_tracing_sets_package_log_level(new_session):
    new_session(tracing="FINEST")

    assert logging.getLogger("snowflake.session").level == logging.DEBUG


def test_tracing_accepts_python_level_names(new_session):
    session = new_session(tracing="warning")

    assert session.tracing == "WARNING"
    assert logging.getLogger("snowflake.session").level == logging.WARNING


def test_invalid_tracing_level(new_session):
    with pytest.raises(InvalidPropertyType, match="LOUD"):
        new_session(tracing="LOUD")


def test_invalid_tracing_level_is_not_stored(new_session):
    session = new_session()

    with pytest.raises(InvalidPropertyType, match="LOUD"):
        session.set_property("tracing", "LOUD")

    assert "tracing" not in session.connection_properties
    session.set_property("tracing", "info")
    assert session.tracing == "INFO"
    assert logging.getLogger("snowflake.session").level == logging.INFO


def test_check_property_value_normalizes_tracing_level():
    assert check_property_value("tracing", " fine ") == "FINE"
    with pytest.raises(InvalidPropertyType, match="Invalid tracing level"):
        check_property_value("tracing", "LOUD")


def test_disable_socks_proxy_is_process_wide(new_session):
    assert not is_socks_proxy_disabled()

    new_session(disable_socks_proxy="true")

    assert is_socks_proxy_disabled()


def test_check_properties_lists_missing(new_session):
    session = new_session(server_url=None, password=None)
    session.set_property("use_proxy", True)

    missing = dict(session.check_properties())

    assert set(missing) == {"server_url", "password", "proxy_host", "proxy_port"}


def test_check_properties_when_complete(new_session):
    assert new_session().check_properties() == []


def test_open_without_server_url(new_session, login_client):
    session = new_session(server_url=None)

    with pytest.raises(MissingServerURL):
        session.open()

    assert login_client.authenticate_calls == []


def test_open_without_account(new_session):
    session = new_session(account=None)

    with pytest.raises(MissingConnectionProperty, match="account"):
        session.open()


def test_open_without_user(new_session):
    with pytest.raises(MissingUsername):
        new_session(user=None).open()


def test_open_without_password(new_session):
    with pytest.raises(MissingPassword):
        new_session(password=None).open()


def test_mfa_needs_user_and_password(new_session):
    with pytest.raises(MissingPassword):
        new_session(password=None, authenticator="username_password_mfa").open()


def test_key_pair_does_not_need_password(new_session, login_client):
    session = new_session(password=None, private_key_file="/tmp/rsa_key.p8")

    session.open()

    assert login_client.authenticate_calls[0].authenticator == "SNOWFLAKE_JWT"


def test_open_with_incomplete_proxy(new_session, transport, login_client):
    session = new_session(use_proxy=True, proxy_host="proxy.example.com")

    with pytest.raises(InvalidProxyProperties):
        session.open()

    assert transport.calls == []
    assert login_client.authenticate_calls == []


def test_session_config_is_immutable(opened_session):
    config = opened_session.config

    with pytest.raises(AttributeError):
        config.login_timeout = 5

    changed = config.copy_with(login_timeout=5)
    assert changed.login_timeout == 5
    assert config.login_timeout == 60
    assert isinstance(changed, SessionConfig)


def test_session_config_hides_secrets(opened_session):
    assert "testpassword" not in repr(opened_session.config)


def test_private_key_accepts_elliptic_curve_key(new_session, login_client):
    private_key = ec.generate_private_key(ec.SECP256R1())
    session = new_session(private_key=private_key, password=None)

    assert session.connection_properties["private_key"] is private_key
    session.open()
    (login_input,) = login_client.authenticate_calls
    assert login_input.authenticator == "SNOWFLAKE_JWT"
    assert login_input.private_key is private_key
    session.close()
