#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Protocol
from urllib.parse import urlsplit

import requests
from requests.exceptions import ConnectionError, ConnectTimeout, ReadTimeout, SSLError

from .errorcode import ER_FAILED_TO_REQUEST, ER_HTTP_GENERAL_ERROR
from .errors import (
    BadRequestError,
    Error,
    ForbiddenError,
    GatewayTimeoutError,
    HttpError,
    InternalServerError,
    OtherHTTPRetryableError,
    RequestTimeoutError,
    ServiceUnavailableError,
    TooManyRequests,
    TransportError,
)
from .sqlstate import SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED, SQLSTATE_IO_ERROR
from .time_util import BackoffPolicy, TimeoutBackoffCtx

logger = logging.getLogger(__name__)

OK = 200
BAD_REQUEST = 400
FORBIDDEN = 403
METHOD_NOT_ALLOWED = 405
REQUEST_TIMEOUT = 408
TOO_MANY_REQUESTS = 429
INTERNAL_SERVER_ERROR = 500
SERVICE_UNAVAILABLE = 503
GATEWAY_TIMEOUT = 504

STATUS_TO_EXCEPTION: dict[int, type[Error]] = {
    INTERNAL_SERVER_ERROR: InternalServerError,
    FORBIDDEN: ForbiddenError,
    SERVICE_UNAVAILABLE: ServiceUnavailableError,
    GATEWAY_TIMEOUT: GatewayTimeoutError,
    BAD_REQUEST: BadRequestError,
    REQUEST_TIMEOUT: RequestTimeoutError,
    TOO_MANY_REQUESTS: TooManyRequests,
}

# process wide, a session disabling it affects every session in the process
_socks_proxy_disabled = False
_socks_proxy_lock = threading.Lock()


def set_socks_proxy_disabled(disabled: bool) -> None:
    """Stops all transports from picking up proxies from the environment."""
    global _socks_proxy_disabled
    with _socks_proxy_lock:
        _socks_proxy_disabled = bool(disabled)


def is_socks_proxy_disabled() -> bool:
    return _socks_proxy_disabled


def is_retryable_http_code(code: int) -> bool:
    """Decides whether code is a retryable HTTP issue."""
    return 500 <= code < 600 or code in (
        BAD_REQUEST,  # 400
        FORBIDDEN,  # 403
        METHOD_NOT_ALLOWED,  # 405
        REQUEST_TIMEOUT,  # 408
        TOO_MANY_REQUESTS,  # 429
    )


def get_http_retryable_error(status_code: int) -> Error:
    error_class: type[Error] = STATUS_TO_EXCEPTION.get(
        status_code, OtherHTTPRetryableError
    )
    return error_class(errno=ER_HTTP_GENERAL_ERROR + status_code, code=status_code)


@dataclass(frozen=True)
class HttpClientSettingsKey:
    """Immutable proxy settings, also used as the key of the HTTP session pool."""

    use_proxy: bool = False
    proxy_host: str | None = None
    proxy_port: int | None = None
    proxy_user: str | None = None
    proxy_password: str | None = field(default=None, repr=False)
    non_proxy_hosts: str | None = None
    proxy_protocol: str = "http"

    def copy_with(self, **overrides: Any) -> HttpClientSettingsKey:
        """Return a new HttpClientSettingsKey with overrides applied."""
        return replace(self, **overrides)

    @property
    def proxy_url(self) -> str | None:
        if not self.use_proxy or not self.proxy_host:
            return None
        credentials = ""
        if self.proxy_user:
            credentials = f"{self.proxy_user}:{self.proxy_password or ''}@"
        return f"{self.proxy_protocol}://{credentials}{self.proxy_host}:{self.proxy_port}"

    def proxies(self) -> dict[str, str]:
        proxy_url = self.proxy_url
        if proxy_url is None:
            return {}
        proxies = {"http": proxy_url, "https": proxy_url}
        if self.non_proxy_hosts:
            proxies["no_proxy"] = self.non_proxy_hosts.replace("|", ",")
        return proxies


@dataclass
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None


class Transport(Protocol):
    """The HTTP collaborator used by heartbeat, status polling and login calls."""

    def execute_request(
        self,
        request: HttpRequest,
        connect_timeout: int,
        auth_timeout: int,
        socket_timeout: int,
        retry_count: int,
        settings_key: HttpClientSettingsKey,
    ) -> str:
        """Sends the request and returns the raw response body.

        Raises:
            TransportError: when the request cannot be completed.
        """
        ...


class RequestsTransport:
    """Transport based on requests, with one pooled session per settings key.

    ``connect_timeout`` bounds the whole retry window, ``auth_timeout``
    shortens it further when positive and ``retry_count`` caps the number of
    retries (0 means only the time window applies). ``socket_timeout`` is the
    read timeout of each attempt.
    """

    def __init__(
        self,
        backoff_policy: BackoffPolicy | None = None,
        http_connection_timeout: int = 60,
        use_pooling: bool = True,
    ) -> None:
        self._backoff_policy = backoff_policy
        self._http_connection_timeout = http_connection_timeout
        self._use_pooling = use_pooling
        self._sessions: dict[HttpClientSettingsKey, requests.Session] = {}
        self._lock = threading.Lock()

    def _make_session(self, settings_key: HttpClientSettingsKey) -> requests.Session:
        session = requests.Session()
        session.trust_env = not is_socks_proxy_disabled()
        session.proxies.update(settings_key.proxies())
        return session

    def _get_session(self, settings_key: HttpClientSettingsKey) -> requests.Session:
        if not self._use_pooling:
            return self._make_session(settings_key)
        with self._lock:
            session = self._sessions.get(settings_key)
            if session is None:
                session = self._make_session(settings_key)
                self._sessions[settings_key] = session
            session.trust_env = not is_socks_proxy_disabled()
            return session

    def execute_request(
        self,
        request: HttpRequest,
        connect_timeout: int,
        auth_timeout: int,
        socket_timeout: int,
        retry_count: int,
        settings_key: HttpClientSettingsKey,
    ) -> str:
        timeout = connect_timeout if connect_timeout and connect_timeout > 0 else None
        if auth_timeout and auth_timeout > 0:
            timeout = auth_timeout if timeout is None else min(timeout, auth_timeout)
        retry_ctx = TimeoutBackoffCtx(
            max_retry_attempts=retry_count if retry_count and retry_count > 0 else None,
            timeout=timeout,
            backoff_policy=self._backoff_policy,
        )
        retry_ctx.set_start_time()
        session = self._get_session(settings_key)
        target = urlsplit(request.url)
        try:
            while True:
                logger.debug(
                    "%s %s%s, retry cnt: %s",
                    request.method.upper(),
                    target.netloc,
                    target.path,
                    retry_ctx.current_retry_count + 1,
                )
                cause = self._attempt(
                    session,
                    request,
                    self._connect_timeout(timeout),
                    socket_timeout,
                )
                if isinstance(cause, str):
                    return cause
                if not retry_ctx.should_retry():
                    raise TransportError(
                        msg=(
                            f"Failed to execute request: {request.method.upper()} "
                            f"{target.netloc}{target.path}: {cause}"
                        ),
                        errno=ER_FAILED_TO_REQUEST,
                        sqlstate=SQLSTATE_IO_ERROR,
                    ) from cause
                logger.debug(
                    "retrying: errorclass=%s, error=%s, counter=%s, sleeping=%s(s)",
                    type(cause),
                    cause,
                    retry_ctx.current_retry_count + 1,
                    retry_ctx.current_sleep_time,
                )
                sleep_time = float(retry_ctx.current_sleep_time)
                remaining = retry_ctx.remaining_time_millis(timeout)
                if remaining is not None:
                    # never sleep past the end of the retry window
                    sleep_time = min(sleep_time, max(remaining, 0) / 1000)
                time.sleep(sleep_time)
                retry_ctx.increment()
        finally:
            if not self._use_pooling:
                session.close()

    def _connect_timeout(self, timeout: int | None) -> int:
        if timeout is None:
            return self._http_connection_timeout
        return min(self._http_connection_timeout, timeout)

    def _attempt(
        self,
        session: requests.Session,
        request: HttpRequest,
        connect_timeout: int,
        socket_timeout: int,
    ) -> str | Exception:
        """Returns the body on success, or the retryable cause of the failure."""
        try:
            response = session.request(
                method=request.method.upper(),
                url=request.url,
                headers=request.headers,
                data=request.body,
                timeout=(connect_timeout, socket_timeout or None),
            )
        except SSLError as err:
            # certificate problems do not heal by retrying
            raise TransportError(
                msg=f"SSL error: {err}",
                errno=ER_FAILED_TO_REQUEST,
                sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
            ) from err
        except (ConnectionError, ConnectTimeout, ReadTimeout) as err:
            logger.debug("Hit a transient network error: %s", type(err).__name__)
            return err

        try:
            if response.status_code == OK:
                return response.text
            if is_retryable_http_code(response.status_code):
                return get_http_retryable_error(response.status_code)
            target = urlsplit(request.url)
            raise HttpError(
                msg=(
                    f"{response.status_code} {response.reason}: "
                    f"{request.method.upper()} {target.netloc}{target.path}"
                ),
                errno=ER_HTTP_GENERAL_ERROR + response.status_code,
                sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
            )
        finally:
            response.close()

    def close(self) -> None:
        """Closes all pooled sessions."""
        with self._lock:
            for session in self._sessions.values():
                try:
                    session.close()
                except Exception as e:
                    logger.info(f"Session cleanup failed - failed to close session: {e}")
            self._sessions.clear()
