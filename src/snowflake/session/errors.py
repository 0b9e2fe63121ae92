#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
from logging import getLogger
from typing import TYPE_CHECKING, Any

from .errorcode import (
    ER_CONNECTION_ESTABLISHED_WITH_DIFFERENT_PROP,
    ER_DUPLICATE_CONNECTION_PROPERTY,
    ER_FAILED_TO_CONNECT_TO_DB,
    ER_FAILED_TO_RENEW_SESSION,
    ER_INTERNAL_ERROR,
    ER_INVALID_PROPERTY_TYPE,
    ER_INVALID_PROXY_PROPERTIES,
    ER_MISSING_CONNECTION_PROPERTY,
    ER_NO_PASSWORD,
    ER_NO_SERVER_URL,
    ER_NO_USER,
    ER_QUERY_CANCELLED,
    ER_SESSION_RENEWAL_LIMIT_EXCEEDED,
    ER_TOO_MANY_SESSION_PARAMETERS,
)
from .sqlstate import (
    SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
    SQLSTATE_INVALID_CONNECTION_STRING,
    SQLSTATE_QUERY_CANCELED,
    SQLSTATE_WARNING,
)

if TYPE_CHECKING:  # pragma: no cover
    from .session import Session

logger = getLogger(__name__)


class Error(Exception):
    """Base Snowflake session exception class."""

    def __init__(
        self,
        msg: str | None = None,
        errno: int | None = None,
        sqlstate: str | None = None,
        sfqid: str | None = None,
        done_format_msg: bool | None = None,
    ) -> None:
        super().__init__(msg)
        self.msg = msg
        self.raw_msg = msg
        self.errno = errno or -1
        self.sqlstate = sqlstate or "n/a"
        self.sfqid = sfqid

        if not self.msg:
            self.msg = "Unknown error"

        if self.errno != -1 and not done_format_msg:
            if self.sqlstate != "n/a":
                if logger.getEffectiveLevel() in (logging.INFO, logging.DEBUG):
                    self.msg = f"{self.errno:06d} ({self.sqlstate}): {self.sfqid}: {self.msg}"
                else:
                    self.msg = f"{self.errno:06d} ({self.sqlstate}): {self.msg}"
            else:
                if logger.getEffectiveLevel() in (logging.INFO, logging.DEBUG):
                    self.msg = f"{self.errno:06d}: {self.sfqid}: {self.msg}"
                else:
                    self.msg = f"{self.errno:06d}: {self.msg}"

    def __repr__(self) -> str:
        return self.__str__()

    def __str__(self) -> str:
        return self.msg

    @staticmethod
    def default_errorhandler(
        session: Session | None,
        error_class: type[Error],
        error_value: dict[str, Any],
    ) -> None:
        """Default error handler that raises an error.

        Args:
            session: Session in which the error happened.
            error_class: Class of error that needs handling.
            error_value: A dictionary of the error details.

        Raises:
            A Snowflake error.
        """
        raise error_class(
            msg=error_value.get("msg"),
            errno=error_value.get("errno"),
            sqlstate=error_value.get("sqlstate"),
            sfqid=error_value.get("sfqid"),
            done_format_msg=error_value.get("done_format_msg"),
        )

    @staticmethod
    def errorhandler_wrapper(
        session: Session | None,
        error_class: type[Error] | Error,
        error_value: dict[str, Any] | None = None,
    ) -> None:
        """Error handler wrapper that calls the session's errorhandler.

        Args:
            session: Session in which the error happened.
            error_class: Class of error that needs handling, or an error instance.
            error_value: An optional dictionary of the error details.

        Raises:
            A Snowflake error if the session is None or its handler raises.
        """
        if error_value is None:
            # no value indicates error_class is error_object
            error_object = error_class
            error_class = type(error_object)
            error_value = {
                "msg": error_object.msg,
                "errno": error_object.errno,
                "sqlstate": error_object.sqlstate,
                "sfqid": error_object.sfqid,
                "done_format_msg": True,
            }
        else:
            error_value["done_format_msg"] = False

        if session is not None:
            session.messages.append((error_class, error_value))
            session.errorhandler(session, error_class, error_value)
            return

        Error.default_errorhandler(None, error_class, error_value)


class InterfaceError(Error):
    """Exception for errors related to the interface."""


class DatabaseError(Error):
    """Exception for errors related to the database."""


class InternalError(DatabaseError):
    """Exception for errors internal database errors."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg"),
            errno=kwargs.get("errno") or ER_INTERNAL_ERROR,
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


class OperationalError(DatabaseError):
    """Exception for errors related to the database's operation."""


class ProgrammingError(DatabaseError):
    """Exception for errors programming errors."""


class NotSupportedError(DatabaseError):
    """Exception for errors when an unsupported database feature was used."""


# configuration errors, always fatal to open and never retried
class ConfigurationError(ProgrammingError):
    """Exception for missing or invalid session properties."""

    default_msg = "Invalid connection configuration"
    default_errno = ER_MISSING_CONNECTION_PROPERTY

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or self.default_msg,
            errno=kwargs.get("errno") or self.default_errno,
            sqlstate=kwargs.get("sqlstate") or SQLSTATE_INVALID_CONNECTION_STRING,
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


class MissingServerURL(ConfigurationError):
    default_msg = "Missing server URL"
    default_errno = ER_NO_SERVER_URL


class MissingConnectionProperty(ConfigurationError):
    default_msg = "Missing connection property"
    default_errno = ER_MISSING_CONNECTION_PROPERTY


class MissingUsername(ConfigurationError):
    default_msg = "User is empty"
    default_errno = ER_NO_USER


class MissingPassword(ConfigurationError):
    default_msg = "Password is empty"
    default_errno = ER_NO_PASSWORD


class InvalidProxyProperties(ConfigurationError):
    default_msg = "Both proxy host and port values are needed."
    default_errno = ER_INVALID_PROXY_PROPERTIES


class InvalidPropertyType(ConfigurationError):
    default_msg = "Invalid connection property type"
    default_errno = ER_INVALID_PROPERTY_TYPE


class DuplicateProperty(ConfigurationError):
    default_msg = "Duplicate connection property specified"
    default_errno = ER_DUPLICATE_CONNECTION_PROPERTY


class TooManyProperties(ConfigurationError):
    default_msg = "Too many session parameters"
    default_errno = ER_TOO_MANY_SESSION_PARAMETERS


# authentication and session lifecycle errors
class AuthenticationError(DatabaseError):
    """Exception for rejected credentials or misconfigured authenticators."""


class SessionEstablishmentFailed(AuthenticationError):
    """Exception raised when the login exchange fails."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "Failed to connect to DB",
            errno=kwargs.get("errno") or ER_FAILED_TO_CONNECT_TO_DB,
            sqlstate=kwargs.get("sqlstate") or SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


class SessionRenewalFailed(OperationalError):
    """Exception raised when renewing the session token fails."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "Failed to renew session",
            errno=kwargs.get("errno") or ER_FAILED_TO_RENEW_SESSION,
            sqlstate=kwargs.get("sqlstate") or SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


class ReauthenticationRequired(ProgrammingError):
    """Signal that renewal cannot recover and a full login is required."""

    def __init__(self, cause: Error | None = None, **kwargs) -> None:
        self.cause = cause
        super().__init__(
            msg=kwargs.get("msg") or (cause.raw_msg if cause else None),
            errno=kwargs.get("errno") or (cause.errno if cause else None),
            sqlstate=kwargs.get("sqlstate") or SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


class SessionCloseFailed(OperationalError):
    """Exception raised when the server rejects a close request."""


class ExpiryRetryExhausted(OperationalError):
    """Exception raised when the server keeps reporting an expired session."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "Session kept expiring after renewal",
            errno=kwargs.get("errno") or ER_SESSION_RENEWAL_LIMIT_EXCEEDED,
            sqlstate=kwargs.get("sqlstate") or SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


class QueryCanceled(OperationalError):
    """Exception raised when a timed call is cancelled."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "SQL execution canceled",
            errno=kwargs.get("errno") or ER_QUERY_CANCELLED,
            sqlstate=kwargs.get("sqlstate") or SQLSTATE_QUERY_CANCELED,
            sfqid=kwargs.get("sfqid"),
            done_format_msg=kwargs.get("done_format_msg"),
        )


# server reported application errors
class ServerReportedError(ProgrammingError):
    """Exception for non expiry errors reported by the server."""


class QueryStatusRequestFailed(ServerReportedError):
    """Exception raised when the monitoring endpoint reports a failure."""


class HeartbeatFailed(ServerReportedError):
    """Exception raised when the heartbeat endpoint reports a failure."""


# transport errors
class TransportError(OperationalError):
    """Exception raised when the transport gives up on a request."""


class HttpError(TransportError):
    """Exception for non retryable HTTP status codes."""


class InternalServerError(Error):
    """Exception for 500 HTTP code for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 500: Internal Server Error",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class ServiceUnavailableError(Error):
    """Exception for 503 HTTP code for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 503: Service Unavailable",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class GatewayTimeoutError(Error):
    """Exception for 504 HTTP error for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 504: Gateway Timeout",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class ForbiddenError(Error):
    """Exception for 403 HTTP error for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 403: Forbidden",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class BadRequestError(Error):
    """Exception for 400 HTTP error for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 400: Bad request",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class RequestTimeoutError(Error):
    """Exception for 408 HTTP error for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 408: Request Timeout",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class TooManyRequests(Error):
    """Exception for 429 HTTP error for retry."""

    def __init__(self, **kwargs) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "HTTP 429: Too Many Requests",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class OtherHTTPRetryableError(Error):
    """Exception for other HTTP error for retry."""

    def __init__(self, **kwargs) -> None:
        code = kwargs.get("code", "n/a")
        super().__init__(
            msg=kwargs.get("msg") or f"HTTP {code}",
            errno=kwargs.get("errno"),
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


# configuration file errors
class ConfigManagerError(Error):
    """Configuration manager related errors."""


class ConfigSourceError(ConfigManagerError):
    """Configuration source related errors."""


class MissingConfigOptionError(ConfigManagerError):
    """A configuration option is missing."""


class SessionPropertyMismatchWarning(UserWarning):
    """The server resolved a session property to something other than requested."""

    def __init__(self, property_name: str, requested: str, actual: str | None) -> None:
        self.property_name = property_name
        self.requested = requested
        self.actual = actual
        self.errno = ER_CONNECTION_ESTABLISHED_WITH_DIFFERENT_PROP
        self.sqlstate = SQLSTATE_WARNING
        super().__init__(
            f"{self.errno:06d} ({self.sqlstate}): Connection established with "
            f"different {property_name}: requested {requested}, got {actual}"
        )
