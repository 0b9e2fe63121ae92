#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

from enum import Enum, unique

# GS return codes
ID_TOKEN_EXPIRED_GS_CODE = "390110"
SESSION_EXPIRED_GS_CODE = "390112"  # GS code: session expired. need to renew
MASTER_TOKEN_NOTFOUND_GS_CODE = "390113"
MASTER_TOKEN_EXPIRED_GS_CODE = "390114"
MASTER_TOKEN_INVALD_GS_CODE = "390115"
BAD_REQUEST_GS_CODE = "390400"

# renewal failures that can only be recovered by a new login
REAUTHENTICATION_REQUIRED_GS_CODES = frozenset(
    (
        ID_TOKEN_EXPIRED_GS_CODE,
        SESSION_EXPIRED_GS_CODE,
        MASTER_TOKEN_NOTFOUND_GS_CODE,
        MASTER_TOKEN_EXPIRED_GS_CODE,
        MASTER_TOKEN_INVALD_GS_CODE,
        BAD_REQUEST_GS_CODE,
    )
)

# endpoints
SF_PATH_LOGIN_REQUEST = "/session/v1/login-request"
SF_PATH_AUTHENTICATOR_REQUEST = "/session/authenticator-request"
SF_PATH_TOKEN_REQUEST = "/session/token-request"
SF_PATH_SESSION = "/session"
SF_PATH_SESSION_HEARTBEAT = "/session/heartbeat"
SF_PATH_QUERY_MONITOR = "/monitoring/queries/"

REQUEST_ID = "requestId"
REQUEST_TYPE_RENEW = "RENEW"

# http headers
HTTP_HEADER_CONTENT_TYPE = "Content-Type"
HTTP_HEADER_ACCEPT = "accept"
HTTP_HEADER_USER_AGENT = "User-Agent"
HTTP_HEADER_SERVICE_NAME = "X-Snowflake-Service"
HEADER_AUTHORIZATION_KEY = "Authorization"
HEADER_SNOWFLAKE_TOKEN = 'Snowflake Token="{token}"'

CONTENT_TYPE_APPLICATION_JSON = "application/json"
ACCEPT_TYPE_APPLICATION_SNOWFLAKE = "application/snowflake"

# authenticators
DEFAULT_AUTHENTICATOR = "SNOWFLAKE"  # default authenticator name
EXTERNAL_BROWSER_AUTHENTICATOR = "EXTERNALBROWSER"
KEY_PAIR_AUTHENTICATOR = "SNOWFLAKE_JWT"
OAUTH_AUTHENTICATOR = "OAUTH"
USR_PWD_MFA_AUTHENTICATOR = "USERNAME_PASSWORD_MFA"
OKTA_AUTHENTICATOR_PREFIX = "HTTPS://"

# session parameters returned by the server at login
PARAMETER_AUTOCOMMIT = "AUTOCOMMIT"
PARAMETER_CLIENT_SESSION_KEEP_ALIVE = "CLIENT_SESSION_KEEP_ALIVE"
PARAMETER_CLIENT_SESSION_KEEP_ALIVE_HEARTBEAT_FREQUENCY = (
    "CLIENT_SESSION_KEEP_ALIVE_HEARTBEAT_FREQUENCY"
)
PARAMETER_CLIENT_VALIDATE_DEFAULT_PARAMETERS = "CLIENT_VALIDATE_DEFAULT_PARAMETERS"
PARAMETER_SERVICE_NAME = "SERVICE_NAME"

# limits and defaults, all timeouts in seconds
MAX_SESSION_PARAMETERS = 1000
MAX_SESSION_RENEWAL_ATTEMPTS = 5
DEFAULT_LOGIN_TIMEOUT = 60
DEFAULT_NETWORK_TIMEOUT = 0  # no timeout
DEFAULT_AUTH_TIMEOUT = 0
DEFAULT_HTTP_CLIENT_CONNECTION_TIMEOUT = 60
DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT = 300
DEFAULT_HEARTBEAT_FREQUENCY = 3600
# heartbeat requests get their own, longer timeout
HEARTBEAT_TIMEOUT = 300

NO_ERROR_CODE_FROM_SERVER = "no_error_code_from_server"

ENV_VAR_SNOWFLAKE_HOME = "SNOWFLAKE_HOME"
ENV_VAR_DEFAULT_CONNECTION_NAME = "SNOWFLAKE_DEFAULT_CONNECTION_NAME"
CONNECTIONS_FILE = "connections.toml"


@unique
class QueryStatus(Enum):
    """Lifecycle states reported by the query monitoring endpoint."""

    RUNNING = "RUNNING"
    ABORTING = "ABORTING"
    SUCCESS = "SUCCESS"
    FAILED_WITH_ERROR = "FAILED_WITH_ERROR"
    ABORTED = "ABORTED"
    QUEUED = "QUEUED"
    FAILED_WITH_INCIDENT = "FAILED_WITH_INCIDENT"
    DISCONNECTED = "DISCONNECTED"
    RESUMING_WAREHOUSE = "RESUMING_WAREHOUSE"
    # purposeful typo. Is present in QueryDTO.java
    QUEUED_REPARING_WAREHOUSE = "QUEUED_REPARING_WAREHOUSE"
    RESTARTED = "RESTARTED"
    BLOCKED = "BLOCKED"
    CANCELLED = "CANCELLED"
    NO_DATA = "NO_DATA"

    @classmethod
    def from_string(cls, description: str | None) -> QueryStatus:
        """Maps the server's textual status, unknown or empty values become NO_DATA."""
        if not description:
            return cls.NO_DATA
        try:
            return cls[description.strip().upper()]
        except KeyError:
            return cls.NO_DATA

    @property
    def is_still_running(self) -> bool:
        return self in _STILL_RUNNING_STATUSES

    @property
    def is_an_error(self) -> bool:
        return self in _ERROR_STATUSES


_STILL_RUNNING_STATUSES = frozenset(
    (
        QueryStatus.RUNNING,
        QueryStatus.RESUMING_WAREHOUSE,
        QueryStatus.QUEUED,
        QueryStatus.QUEUED_REPARING_WAREHOUSE,
        QueryStatus.ABORTING,
        QueryStatus.RESTARTED,
        QueryStatus.BLOCKED,
    )
)

_ERROR_STATUSES = frozenset(
    (
        QueryStatus.FAILED_WITH_ERROR,
        QueryStatus.ABORTED,
        QueryStatus.DISCONNECTED,
        QueryStatus.FAILED_WITH_INCIDENT,
    )
)
