#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
from logging import NullHandler

from .config_manager import load_connection_parameters
from .errors import (
    ConfigurationError,
    DatabaseError,
    Error,
    ExpiryRetryExhausted,
    HeartbeatFailed,
    InterfaceError,
    InternalError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
    QueryCanceled,
    QueryStatusRequestFailed,
    ReauthenticationRequired,
    SessionEstablishmentFailed,
    SessionPropertyMismatchWarning,
    SessionRenewalFailed,
    TransportError,
)
from .heartbeat import HeartbeatBackground
from .logging_utils.filters import add_filters_to_external_loggers
from .login import LoginInput, LoginOutput, SnowflakeLoginClient
from .query_status import QueryStatus, QueryStatusResult
from .session import Session
from .transport import HttpClientSettingsKey, RequestsTransport
from .version import VERSION

logging.getLogger(__name__).addHandler(NullHandler())
add_filters_to_external_loggers()


def connect(
    connection_name: str | None = None,
    connections_file_path: str | None = None,
    **kwargs,
) -> Session:
    """Opens a session from a connections.toml entry, keyword properties win."""
    parameters = (
        load_connection_parameters(connection_name, connections_file_path)
        if connection_name is not None or connections_file_path is not None
        else {}
    )
    parameters.update(kwargs)
    session = Session.from_connection_parameters(parameters)
    session.open()
    return session


SNOWFLAKE_SESSION_VERSION = ".".join(str(v) for v in VERSION[0:3])
__version__ = SNOWFLAKE_SESSION_VERSION

__all__ = [
    "Session",
    "connect",
    "load_connection_parameters",
    "HeartbeatBackground",
    "HttpClientSettingsKey",
    "LoginInput",
    "LoginOutput",
    "QueryStatus",
    "QueryStatusResult",
    "RequestsTransport",
    "SnowflakeLoginClient",
    # Error handling
    "Error",
    "InterfaceError",
    "DatabaseError",
    "InternalError",
    "NotSupportedError",
    "OperationalError",
    "ProgrammingError",
    "ConfigurationError",
    "SessionEstablishmentFailed",
    "SessionRenewalFailed",
    "ReauthenticationRequired",
    "ExpiryRetryExhausted",
    "QueryCanceled",
    "QueryStatusRequestFailed",
    "HeartbeatFailed",
    "TransportError",
    "SessionPropertyMismatchWarning",
    "__version__",
]
