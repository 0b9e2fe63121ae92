#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from snowflake.session.errorcode import (
    ER_FAILED_TO_CONNECT_TO_DB,
    ER_NO_PASSWORD,
    ER_QUERY_CANCELLED,
    ER_SESSION_RENEWAL_LIMIT_EXCEEDED,
)
from snowflake.session.errors import (
    ConfigurationError,
    Error,
    ExpiryRetryExhausted,
    HeartbeatFailed,
    MissingPassword,
    ProgrammingError,
    QueryCanceled,
    ReauthenticationRequired,
    SessionEstablishmentFailed,
    SessionPropertyMismatchWarning,
)
from snowflake.session.sqlstate import (
    SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
    SQLSTATE_INVALID_CONNECTION_STRING,
    SQLSTATE_QUERY_CANCELED,
)


@pytest.fixture(autouse=True)
def quiet_package_logger(caplog):
    # sfqid is only added to messages at INFO and DEBUG
    caplog.set_level(logging.WARNING, logger="snowflake.session")


def test_message_formatting():
    error = ProgrammingError(msg="bad thing", errno=123, sqlstate="42000")

    assert str(error) == "000123 (42000): bad thing"
    assert error.raw_msg == "bad thing"


def test_message_formatting_without_sqlstate():
    assert str(Error(msg="bad thing", errno=123)) == "000123: bad thing"


def test_message_without_errno_is_not_formatted():
    error = Error(msg="bad thing")

    assert str(error) == "bad thing"
    assert error.errno == -1
    assert error.sqlstate == "n/a"


def test_unknown_error():
    assert str(Error()) == "Unknown error"


def test_done_format_msg_keeps_message():
    assert (
        str(Error(msg="000123: bad thing", errno=123, done_format_msg=True))
        == "000123: bad thing"
    )


def test_sfqid_in_message_when_debugging(caplog):
    caplog.set_level(logging.DEBUG, logger="snowflake.session")

    error = Error(msg="bad thing", errno=123, sqlstate="42000", sfqid="01a2b3c4")

    assert str(error) == "000123 (42000): 01a2b3c4: bad thing"


def test_configuration_error_defaults():
    error = MissingPassword()

    assert isinstance(error, ConfigurationError)
    assert isinstance(error, ProgrammingError)
    assert error.errno == ER_NO_PASSWORD
    assert error.sqlstate == SQLSTATE_INVALID_CONNECTION_STRING
    assert error.raw_msg == "Password is empty"


@pytest.mark.parametrize(
    "error,errno,sqlstate",
    [
        (
            SessionEstablishmentFailed(),
            ER_FAILED_TO_CONNECT_TO_DB,
            SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
        ),
        (
            ExpiryRetryExhausted(),
            ER_SESSION_RENEWAL_LIMIT_EXCEEDED,
            SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
        ),
        (QueryCanceled(), ER_QUERY_CANCELLED, SQLSTATE_QUERY_CANCELED),
    ],
)
def test_session_error_defaults(error, errno, sqlstate):
    assert error.errno == errno
    assert error.sqlstate == sqlstate


def test_reauthentication_required_keeps_cause():
    cause = ProgrammingError(msg="id token expired", errno=390110)

    error = ReauthenticationRequired(cause)

    assert error.cause is cause
    assert error.errno == 390110
    assert error.raw_msg == "id token expired"
    assert error.sqlstate == SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED


def test_errorhandler_wrapper_without_session_raises():
    with pytest.raises(ProgrammingError, match="bad thing"):
        Error.errorhandler_wrapper(
            None, ProgrammingError, {"msg": "bad thing", "errno": 123}
        )


def test_errorhandler_wrapper_keeps_formatted_instance():
    error = HeartbeatFailed(msg="heartbeat rejected", errno=390111)

    with pytest.raises(HeartbeatFailed) as exc_info:
        Error.errorhandler_wrapper(None, error)

    assert str(exc_info.value) == str(error)
    assert exc_info.value.errno == 390111


def test_errorhandler_wrapper_uses_session_handler():
    session = MagicMock(messages=[])
    error = HeartbeatFailed(msg="heartbeat rejected")

    Error.errorhandler_wrapper(session, error)

    ((error_class, error_value),) = session.messages
    assert error_class is HeartbeatFailed
    assert error_value["msg"] == str(error)
    assert error_value["done_format_msg"] is True
    session.errorhandler.assert_called_once_with(session, HeartbeatFailed, error_value)


def test_property_mismatch_warning():
    warning = SessionPropertyMismatchWarning("Role", "sysadmin", "PUBLIC")

    assert str(warning) == (
        "251015 (01000): Connection established with different Role: "
        "requested sysadmin, got PUBLIC"
    )
