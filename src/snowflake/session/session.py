#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import json
import logging
import math
import threading
import time
import uuid
import warnings
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

from .constants import (
    CONTENT_TYPE_APPLICATION_JSON,
    DEFAULT_AUTH_TIMEOUT,
    DEFAULT_HTTP_CLIENT_CONNECTION_TIMEOUT,
    DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT,
    DEFAULT_LOGIN_TIMEOUT,
    DEFAULT_NETWORK_TIMEOUT,
    HEADER_AUTHORIZATION_KEY,
    HEADER_SNOWFLAKE_TOKEN,
    HEARTBEAT_TIMEOUT,
    HTTP_HEADER_ACCEPT,
    HTTP_HEADER_CONTENT_TYPE,
    HTTP_HEADER_SERVICE_NAME,
    HTTP_HEADER_USER_AGENT,
    MAX_SESSION_PARAMETERS,
    MAX_SESSION_RENEWAL_ATTEMPTS,
    PARAMETER_CLIENT_SESSION_KEEP_ALIVE,
    PARAMETER_CLIENT_SESSION_KEEP_ALIVE_HEARTBEAT_FREQUENCY,
    PARAMETER_CLIENT_VALIDATE_DEFAULT_PARAMETERS,
    PARAMETER_SERVICE_NAME,
    REQUEST_ID,
    SESSION_EXPIRED_GS_CODE,
    SF_PATH_QUERY_MONITOR,
    SF_PATH_SESSION_HEARTBEAT,
)
from .credentials import CredentialState
from .description import USER_AGENT
from .errorcode import (
    ER_CONNECTION_IS_CLOSED,
    ER_FAILED_TO_GET_QUERY_STATUS,
    ER_FAILED_TO_HEARTBEAT,
)
from .errors import (
    DuplicateProperty,
    Error,
    HeartbeatFailed,
    InternalError,
    InvalidProxyProperties,
    MissingConnectionProperty,
    MissingPassword,
    MissingServerURL,
    MissingUsername,
    QueryCanceled,
    QueryStatusRequestFailed,
    ReauthenticationRequired,
    SessionEstablishmentFailed,
    SessionPropertyMismatchWarning,
    SessionRenewalFailed,
    TooManyProperties,
)
from .heartbeat import HeartbeatBackground
from .login import AuthenticatorClient, LoginInput, SnowflakeLoginClient
from .properties import (
    SESSION_PROPERTIES,
    TRACING_LEVELS,
    SessionConfig,
    check_property_value,
    lookup_property,
    requires_user_and_password,
    resolve_authenticator,
)
from .query_status import QueryStatus, QueryStatusResult, parse_query_status_response
from .retry import AttemptResult, with_expiry_retry
from .secret_detector import SecretDetector
from .sqlstate import SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED
from .transport import (
    HttpRequest,
    RequestsTransport,
    Transport,
    set_socks_proxy_disabled,
)

logger = logging.getLogger(__name__)

PACKAGE_LOGGER_NAME = "snowflake.session"

_MISSING_PROPERTY_DESCRIPTIONS = {
    "server_url": "server URL",
    "account": "account name",
    "user": "username for account",
    "password": "password for account",
    "proxy_host": "proxy host name",
    "proxy_port": "proxy port; should be an integer",
}


class Session:
    """A logical connection to Snowflake.

    The session authenticates, keeps its tokens alive through the shared
    heartbeat scheduler, renews them when the server reports expiry and
    refuses to be torn down while asynchronous queries still run.

    Collaborators are injected for testing; by default a ``RequestsTransport``,
    a ``SnowflakeLoginClient`` on top of it and the process wide
    ``HeartbeatBackground`` are used.
    """

    def __init__(
        self,
        login_client: AuthenticatorClient | None = None,
        transport: Transport | None = None,
        heartbeat_background: HeartbeatBackground | None = None,
        telemetry_client: Any | None = None,
        errorhandler: Callable | None = None,
    ) -> None:
        self._transport: Transport = transport or RequestsTransport()
        self._login_client: AuthenticatorClient = login_client or SnowflakeLoginClient(
            self._transport
        )
        self._heartbeat_background = (
            heartbeat_background or HeartbeatBackground.get_instance()
        )
        self._telemetry_client = telemetry_client
        self.errorhandler = errorhandler or Error.default_errorhandler
        self.messages: list[tuple[type[Error], dict[str, Any]]] = []
        self.warnings: list[SessionPropertyMismatchWarning] = []

        self._lock_properties = threading.Lock()
        self._properties: dict[str, Any] = {}
        self._session_parameters: dict[str, Any] = {}
        self._config: SessionConfig | None = None
        self._credentials = CredentialState()

        self._lock_state = threading.Lock()
        self._is_closed = True

        self._login_timeout = DEFAULT_LOGIN_TIMEOUT
        self._network_timeout = DEFAULT_NETWORK_TIMEOUT
        self._auth_timeout = DEFAULT_AUTH_TIMEOUT
        self._http_client_socket_timeout = DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT
        self._http_client_connection_timeout = DEFAULT_HTTP_CLIENT_CONNECTION_TIMEOUT
        self._inject_client_pause = 0
        self._inject_socket_timeout = 0
        self._passcode_in_password = False
        self._tracing: str | None = None
        self._validate_default_parameters = False
        self._private_key_file: str | None = None

        self._database: str | None = None
        self._schema: str | None = None
        self._role: str | None = None
        self._warehouse: str | None = None
        self._session_id: str | None = None
        self._autocommit: bool | None = None
        self._server_version: str | None = None
        self._service_name: str | None = None
        self._common_params: dict[str, Any] = {}

        self._lock_sequence_counter = threading.Lock()
        self._sequence_counter = 0

        self._lock_async_queries = threading.Lock()
        self._active_async_queries: set[str] = set()

    @classmethod
    def from_connection_parameters(
        cls, parameters: Mapping[str, Any], **kwargs: Any
    ) -> Session:
        """Builds a session from connection parameters, e.g. a connections.toml entry.

        ``host``, ``port`` and ``protocol`` are folded into ``server_url`` when
        no server URL is given; the host defaults to the account's
        snowflakecomputing.com name.
        """
        parameters = dict(parameters)
        host = parameters.pop("host", None)
        port = parameters.pop("port", None)
        protocol = parameters.pop("protocol", None) or "https"
        if not any(k.lower() == "server_url" for k in parameters):
            account = parameters.get("account")
            if host is None and account:
                host = f"{account}.snowflakecomputing.com"
            if host is not None:
                parameters["server_url"] = f"{protocol}://{host}:{port or 443}"
        session = cls(**kwargs)
        for name, value in parameters.items():
            session.set_property(name, value)
        return session

    def __enter__(self) -> Session:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # properties
    def set_property(self, name: str, value: Any) -> None:
        """Adds a connection property or a dynamic session parameter.

        Recognized properties are coerced to their type and take effect right
        away. Anything else is stored as a session parameter sent at login.
        Every name can be set only once.

        Raises:
            InvalidPropertyType: If a recognized property has a value of the wrong type.
            DuplicateProperty: If the name was already set.
            TooManyProperties: If the session parameter limit would be exceeded.
        """
        key = lookup_property(name)
        if key is not None:
            value = check_property_value(key, value)
            with self._lock_properties:
                if key in self._properties:
                    raise DuplicateProperty(
                        msg=f"Duplicate connection property specified: {name}"
                    )
                self._properties[key] = value
            self._apply_property(key, value)
            return

        # anything unrecognized is a session parameter
        with self._lock_properties:
            if name in self._session_parameters:
                raise DuplicateProperty(
                    msg=f"Duplicate connection property specified: {name}"
                )
            if len(self._session_parameters) >= MAX_SESSION_PARAMETERS:
                raise TooManyProperties(
                    msg=(
                        f"Too many session parameters, the limit is "
                        f"{MAX_SESSION_PARAMETERS}: {name}"
                    )
                )
            self._session_parameters[name] = value

    def _apply_property(self, key: str, value: Any) -> None:
        if value is None:
            return
        if key == "login_timeout":
            self._login_timeout = value
        elif key == "network_timeout":
            self._network_timeout = value
        elif key == "inject_client_pause":
            self._inject_client_pause = value
        elif key == "inject_socket_timeout":
            self._inject_socket_timeout = value
        elif key == "passcode_in_password":
            self._passcode_in_password = value
        elif key == "tracing":
            self._tracing = value
            logging.getLogger(PACKAGE_LOGGER_NAME).setLevel(TRACING_LEVELS[value])
        elif key == "disable_socks_proxy":
            # affects every session of the process
            set_socks_proxy_disabled(value)
        elif key == "validate_default_parameters":
            self._validate_default_parameters = value
        elif key == "private_key_file":
            self._private_key_file = value

    @property
    def session_parameters(self) -> dict[str, Any]:
        with self._lock_properties:
            return dict(self._session_parameters)

    @property
    def connection_properties(self) -> dict[str, Any]:
        with self._lock_properties:
            return dict(self._properties)

    def _authenticator(self) -> str:
        return resolve_authenticator(
            self._properties.get("authenticator"),
            bool(self._properties.get("private_key") or self._private_key_file),
        )

    def check_properties(self) -> list[tuple[str, str]]:
        """Returns the properties still needed to open, as (name, description) pairs."""
        missing = [
            (name, _MISSING_PROPERTY_DESCRIPTIONS.get(name, name))
            for name, spec in SESSION_PROPERTIES.items()
            if spec.required and self._properties.get(name) in (None, "")
        ]
        if requires_user_and_password(self._authenticator()):
            for name in ("user", "password"):
                if not self._properties.get(name):
                    missing.append((name, _MISSING_PROPERTY_DESCRIPTIONS[name]))
        if self._properties.get("use_proxy"):
            for name in ("proxy_host", "proxy_port"):
                if self._properties.get(name) in (None, ""):
                    missing.append((name, _MISSING_PROPERTY_DESCRIPTIONS[name]))
        return missing

    def _sanity_check(self) -> None:
        for name, spec in SESSION_PROPERTIES.items():
            if spec.required and self._properties.get(name) in (None, ""):
                if name == "server_url":
                    raise MissingServerURL()
                raise MissingConnectionProperty(
                    msg=f"Missing connection property: {name}"
                )

        if requires_user_and_password(self._authenticator()):
            if not self._properties.get("user"):
                raise MissingUsername()
            if not self._properties.get("password"):
                raise MissingPassword()

        if self._properties.get("use_proxy"):
            if (
                not self._properties.get("proxy_host")
                or self._properties.get("proxy_port") is None
            ):
                raise InvalidProxyProperties()

    # open
    def open(self) -> None:
        """Authenticates and starts the heartbeat.

        Raises:
            ConfigurationError: If required properties are missing or invalid.
            SessionEstablishmentFailed: If the login exchange fails.
        """
        logger.debug("open()")
        self._sanity_check()

        with self._lock_properties:
            config = SessionConfig.from_properties(
                self._properties,
                self._session_parameters,
                self._login_timeout,
                self._network_timeout,
            )
        config = config.copy_with(
            auth_timeout=self._auth_timeout,
            http_client_connection_timeout=self._http_client_connection_timeout,
            http_client_socket_timeout=self._http_client_socket_timeout,
            validate_default_parameters=self._validate_default_parameters,
        )
        logger.debug(
            "input: server=%s, account=%s, user=%s, password=%s, role=%s, "
            "database=%s, schema=%s, warehouse=%s, validate_default_parameters=%s, "
            "authenticator=%s, passcode_in_password=%s, private_key_file=%s, "
            "login_timeout=%s, network_timeout=%s, tracing=%s, use_proxy=%s",
            config.server_url,
            config.account,
            config.user,
            "******" if config.password else None,
            config.role,
            config.database,
            config.schema,
            config.warehouse,
            config.validate_default_parameters,
            config.authenticator,
            config.passcode_in_password,
            config.private_key_file,
            config.login_timeout,
            config.network_timeout,
            self._tracing,
            config.settings_key.use_proxy,
        )

        login_input = self._login_input(config)
        try:
            output = self._login_client.authenticate(login_input)
        except SessionEstablishmentFailed:
            raise
        except Error as e:
            raise SessionEstablishmentFailed(
                msg=f"Failed to connect to DB: {config.server_url}. {e.raw_msg}"
            ) from e

        self._credentials.update_tokens(
            output.session_token,
            output.master_token,
            master_validity_in_seconds=output.master_validity_in_seconds,
            id_token=output.id_token,
            mfa_token=output.mfa_token,
        )
        self._config = config
        if output.http_client_socket_timeout:
            self._http_client_socket_timeout = output.http_client_socket_timeout
        self._database = output.database
        self._schema = output.schema
        self._role = output.role
        self._warehouse = output.warehouse
        self._session_id = output.session_id
        self._autocommit = output.autocommit
        self._server_version = output.server_version
        with self._lock_state:
            self._is_closed = False

        self._update_common_params(output.common_params)
        self._check_session_properties(config)
        self._start_heartbeat()

    def _login_input(self, config: SessionConfig) -> LoginInput:
        snapshot = self._credentials.snapshot()
        return LoginInput(
            server_url=config.server_url,
            account=config.account,
            user=config.user,
            password=config.password,
            authenticator=config.authenticator,
            okta_username=config.okta_username,
            token=config.token,
            passcode_in_password=config.passcode_in_password,
            passcode=config.passcode,
            private_key=config.private_key,
            private_key_file=config.private_key_file,
            private_key_file_pwd=config.private_key_file_pwd,
            database=config.database,
            schema=config.schema,
            warehouse=config.warehouse,
            role=config.role,
            application=config.application,
            app_id=config.app_id,
            app_version=config.app_version,
            login_timeout=config.login_timeout,
            network_timeout=config.network_timeout,
            auth_timeout=config.auth_timeout,
            socket_timeout=config.http_client_socket_timeout,
            validate_default_parameters=config.validate_default_parameters,
            tracing=self._tracing,
            service_name=self._service_name,
            id_token=snapshot.id_token,
            mfa_token=snapshot.mfa_token,
            session_parameters=dict(config.session_parameters),
            settings_key=config.settings_key,
        )

    def _update_common_params(self, params: Mapping[str, Any]) -> None:
        """Applies parameters the server returned at login, user settings win."""
        self._common_params.update(params)
        overrides: dict[str, Any] = {}
        if (
            PARAMETER_CLIENT_SESSION_KEEP_ALIVE in params
            and self._properties.get("client_session_keep_alive") is None
        ):
            overrides["client_session_keep_alive"] = _to_bool(
                params[PARAMETER_CLIENT_SESSION_KEEP_ALIVE]
            )
        if (
            PARAMETER_CLIENT_SESSION_KEEP_ALIVE_HEARTBEAT_FREQUENCY in params
            and self._properties.get("client_session_keep_alive_heartbeat_frequency")
            is None
        ):
            overrides["heartbeat_frequency"] = int(
                params[PARAMETER_CLIENT_SESSION_KEEP_ALIVE_HEARTBEAT_FREQUENCY]
            )
        if (
            PARAMETER_CLIENT_VALIDATE_DEFAULT_PARAMETERS in params
            and self._properties.get("validate_default_parameters") is None
        ):
            self._validate_default_parameters = _to_bool(
                params[PARAMETER_CLIENT_VALIDATE_DEFAULT_PARAMETERS]
            )
            overrides["validate_default_parameters"] = self._validate_default_parameters
        if PARAMETER_SERVICE_NAME in params:
            self._service_name = params[PARAMETER_SERVICE_NAME]
        if overrides:
            self._config = self._config.copy_with(**overrides)

    def _check_session_properties(self, config: SessionConfig) -> None:
        for name, requested, actual in (
            ("Database", config.database, self._database),
            ("Schema", config.schema, self._schema),
            ("Role", config.role, self._role),
            ("Warehouse", config.warehouse, self._warehouse),
        ):
            if requested is not None and requested.lower() != (actual or "").lower():
                warning = SessionPropertyMismatchWarning(name, requested, actual)
                self.warnings.append(warning)
                logger.warning(str(warning))
                warnings.warn(warning, stacklevel=3)

    # heartbeat
    @property
    def heartbeat_enabled(self) -> bool:
        if self._config is not None:
            return self._config.client_session_keep_alive
        return bool(self._properties.get("client_session_keep_alive"))

    def _start_heartbeat(self) -> None:
        if self.heartbeat_enabled and self._credentials.master_token:
            logger.debug(
                "start heartbeat, master token validity: %s",
                self._credentials.master_validity_in_seconds,
            )
            self._heartbeat_background.register(
                self,
                self._credentials.master_validity_in_seconds,
                self._config.heartbeat_frequency,
            )
        else:
            logger.debug("heartbeat not enabled for the session")

    def _stop_heartbeat(self) -> None:
        logger.debug("stop heartbeat")
        self._heartbeat_background.deregister(self)

    def heartbeat_tick(self) -> None:
        """Heartbeat run by the scheduler; failures go to the error handler."""
        if self.is_closed:
            return
        try:
            self.heartbeat()
        except Error as e:
            Error.errorhandler_wrapper(self, e)

    def heartbeat(
        self, cancel_event: threading.Event | None = None, deadline: float | None = None
    ) -> None:
        """Sends a heartbeat, renewing the session if the server reports expiry.

        Raises:
            HeartbeatFailed: If the server reports any other error.
            TransportError: If the request cannot be delivered.
        """
        logger.debug("heartbeat()")
        if self.is_closed:
            return
        self.injected_delay()

        url = (
            f"{self._base_url()}{SF_PATH_SESSION_HEARTBEAT}?"
            f"{urlencode({REQUEST_ID: str(uuid.uuid4())})}"
        )

        def attempt(prev_session_token: str | None) -> AttemptResult[None]:
            connect_timeout = HEARTBEAT_TIMEOUT
            socket_timeout = self._socket_timeout()
            if deadline is not None:
                # bound the attempt so it cannot outlive the caller's timeout
                remaining = max(int(math.ceil(deadline - time.monotonic())), 1)
                connect_timeout = min(connect_timeout, remaining)
                socket_timeout = min(socket_timeout or remaining, remaining)
            try:
                raw = self._transport.execute_request(
                    HttpRequest("POST", url, self._auth_headers(prev_session_token)),
                    connect_timeout,
                    self._auth_timeout,
                    socket_timeout,
                    0,
                    self._settings_key(),
                )
            except Error as e:
                return AttemptResult.fatal(e)
            logger.debug(
                "connection heartbeat response: %s",
                SecretDetector.mask_secrets(raw).masked_text,
            )
            try:
                ret = json.loads(raw)
            except (TypeError, ValueError) as e:
                return AttemptResult.fatal(
                    InternalError(msg=f"unexpected heartbeat response: {e}")
                )
            if not isinstance(ret, dict):
                return AttemptResult.fatal(
                    InternalError(
                        msg=f"unexpected heartbeat response: {type(ret).__name__}"
                    )
                )
            if str(ret.get("code")) == SESSION_EXPIRED_GS_CODE:
                logger.debug("renew session and retry")
                return AttemptResult.expired()
            if not ret.get("success"):
                return AttemptResult.fatal(
                    HeartbeatFailed(
                        msg=ret.get("message") or "Failed to heartbeat",
                        errno=_to_int(ret.get("code")) or ER_FAILED_TO_HEARTBEAT,
                        sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
                    )
                )
            return AttemptResult.ok()

        with_expiry_retry(
            attempt,
            lambda: self._credentials.session_token,
            self._renew_or_reauthenticate,
            max_renewals=MAX_SESSION_RENEWAL_ATTEMPTS,
            cancel_event=cancel_event,
            name="heartbeat",
        )

    def call_heartbeat(self, timeout: int = 0) -> None:
        """Sends a heartbeat, giving up after timeout seconds when timeout is positive.

        Raises:
            QueryCanceled: If the heartbeat did not finish in time.
        """
        if timeout and timeout > 0:
            self._call_heartbeat_with_timeout(timeout)
        else:
            self.heartbeat()

    def _call_heartbeat_with_timeout(self, timeout: int) -> None:
        cancel_event = threading.Event()
        deadline = time.monotonic() + timeout
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="heartbeat")
        future = executor.submit(self.heartbeat, cancel_event, deadline)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            cancel_event.set()
            raise QueryCanceled(
                msg=f"Heartbeat did not complete within {timeout} seconds"
            )
        finally:
            executor.shutdown(wait=False)

    # renewal
    def renew_session(self, prev_session_token: str | None) -> None:
        """Exchanges the master token for a new session token.

        Does nothing when the current session token is no longer
        prev_session_token, as another caller already renewed it.

        Raises:
            ReauthenticationRequired: If only a new login can recover the session.
            SessionRenewalFailed: If the renewal fails for any other reason.
        """
        with self._credentials.lock:
            snapshot = self._credentials.snapshot()
            if (
                snapshot.session_token is not None
                and snapshot.session_token != prev_session_token
            ):
                logger.debug(
                    "not renew session because session token has been updated."
                )
                return

            login_input = LoginInput(
                server_url=self._server_url(),
                session_token=snapshot.session_token,
                master_token=snapshot.master_token,
                id_token=snapshot.id_token,
                mfa_token=snapshot.mfa_token,
                login_timeout=self._login_timeout,
                auth_timeout=self._auth_timeout,
                socket_timeout=self._http_client_socket_timeout,
                database=self._database,
                schema=self._schema,
                role=self._role,
                warehouse=self._warehouse,
                service_name=self._service_name,
                settings_key=self._settings_key(),
            )
            try:
                output = self._login_client.renew(login_input)
            except (ReauthenticationRequired, SessionRenewalFailed):
                raise
            except Error as e:
                raise SessionRenewalFailed(msg=e.raw_msg, errno=e.errno) from e

            self._credentials.replace_if_current(
                snapshot.session_token, output.session_token, output.master_token
            )

    def _renew_or_reauthenticate(self, prev_session_token: str | None) -> None:
        try:
            self.renew_session(prev_session_token)
        except ReauthenticationRequired:
            if self._config is None or not self._config.is_external_browser:
                raise
            logger.debug("renewal needs a new login, authenticating again")
            with self._credentials.lock:
                if self._credentials.is_current(prev_session_token):
                    self.open()

    def injected_delay(self) -> None:
        """Sleeps once for inject_client_pause milliseconds, then clears it."""
        with self._lock_properties:
            delay, self._inject_client_pause = self._inject_client_pause, 0
        if delay > 0:
            logger.debug("delayed for %s ms", delay)
            time.sleep(delay / 1000)

    def _socket_timeout(self) -> int:
        # a test harness may force a short read timeout
        if self._inject_socket_timeout > 0:
            return self._inject_socket_timeout
        return self._http_client_socket_timeout

    # query status
    def get_query_status(self, query_id: str) -> QueryStatusResult:
        """Asks the monitoring endpoint for the status of a query.

        The query is dropped from the active async queries once it reached a
        terminal state. A closed session reports DISCONNECTED without asking
        the server.

        Raises:
            QueryStatusRequestFailed: If the server reports an error or cannot be reached.
        """
        if self.is_closed:
            return QueryStatusResult(
                query_id,
                QueryStatus.DISCONNECTED,
                error_code=ER_CONNECTION_IS_CLOSED,
                error_message="Connection is closed",
            )
        self.injected_delay()
        url = f"{self._base_url()}{SF_PATH_QUERY_MONITOR}{query_id}"

        def attempt(prev_session_token: str | None) -> AttemptResult[QueryStatusResult]:
            try:
                raw = self._transport.execute_request(
                    HttpRequest("GET", url, self._auth_headers(prev_session_token)),
                    self._login_timeout,
                    self._auth_timeout,
                    self._socket_timeout(),
                    0,
                    self._settings_key(),
                )
            except Error as e:
                error = QueryStatusRequestFailed(
                    msg=f"No response or invalid response from GET request. Error: {e.raw_msg}",
                    errno=ER_FAILED_TO_GET_QUERY_STATUS,
                    sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
                    sfqid=query_id,
                )
                error.__cause__ = e
                return AttemptResult.fatal(error)
            return parse_query_status_response(raw, query_id)

        result = with_expiry_retry(
            attempt,
            lambda: self._credentials.session_token,
            self._renew_or_reauthenticate,
            max_renewals=MAX_SESSION_RENEWAL_ATTEMPTS,
            name=f"status check of query {query_id}",
        )
        if not result.is_still_running:
            self.remove_active_async_query(query_id)
        return result

    # async queries and close
    def add_active_async_query(self, query_id: str) -> None:
        with self._lock_async_queries:
            self._active_async_queries.add(query_id)

    def remove_active_async_query(self, query_id: str) -> None:
        with self._lock_async_queries:
            self._active_async_queries.discard(query_id)

    @property
    def active_async_queries(self) -> frozenset[str]:
        with self._lock_async_queries:
            return frozenset(self._active_async_queries)

    def is_async_session(self) -> bool:
        with self._lock_async_queries:
            return bool(self._active_async_queries)

    def is_safe_to_close(self) -> bool:
        """Returns whether no tracked asynchronous query is still running.

        Every tracked query is checked, a failed status check is logged and
        does not count as running.
        """
        query_ids = sorted(self.active_async_queries)
        if not query_ids:
            return True
        can_close = True
        for query_id in query_ids:
            try:
                if self.get_query_status(query_id).is_still_running:
                    can_close = False
            except Error as e:
                logger.error("failed to get the status of query %s: %s", query_id, e)
        return can_close

    def close(self) -> None:
        """Closes the session; calling it again does nothing.

        The heartbeat is stopped before the server is told, and the session
        counts as closed even if telling the server failed.
        """
        logger.debug("close()")
        self._stop_heartbeat()

        with self._lock_state:
            if self._is_closed:
                return
            self._is_closed = True

        snapshot = self._credentials.snapshot()
        login_input = LoginInput(
            server_url=self._server_url(),
            session_token=snapshot.session_token,
            login_timeout=self._login_timeout,
            socket_timeout=self._http_client_socket_timeout,
            service_name=self._service_name,
            settings_key=self._settings_key(),
        )
        try:
            self._login_client.close(login_input)
        except Error as e:
            self.messages.append(
                (
                    type(e),
                    {
                        "msg": e.msg,
                        "errno": e.errno,
                        "sqlstate": e.sqlstate,
                        "done_format_msg": True,
                    },
                )
            )
            logger.debug("error in deleting session. ignoring...: %s", e)
        finally:
            self._close_telemetry_client()
            self._credentials.clear()

    def _close_telemetry_client(self) -> None:
        if self._telemetry_client is None:
            return
        try:
            self._telemetry_client.close()
        except Exception as e:
            logger.debug("failed to close the telemetry client: %s", e)

    # helpers
    def _server_url(self) -> str:
        server_url = (
            self._config.server_url
            if self._config is not None
            else self._properties.get("server_url")
        )
        if not server_url:
            raise MissingServerURL()
        return server_url

    def _base_url(self) -> str:
        return self._server_url().rstrip("/")

    def _settings_key(self):
        if self._config is not None:
            return self._config.settings_key
        return SessionConfig.from_properties(
            self._properties, {}, self._login_timeout, self._network_timeout
        ).settings_key

    def _auth_headers(self, session_token: str | None) -> dict[str, str]:
        headers = {
            HTTP_HEADER_CONTENT_TYPE: CONTENT_TYPE_APPLICATION_JSON,
            HTTP_HEADER_ACCEPT: CONTENT_TYPE_APPLICATION_JSON,
            HTTP_HEADER_USER_AGENT: USER_AGENT,
            HEADER_AUTHORIZATION_KEY: HEADER_SNOWFLAKE_TOKEN.format(
                token=session_token
            ),
        }
        if self._service_name:
            headers[HTTP_HEADER_SERVICE_NAME] = self._service_name
        return headers

    def next_sequence_counter(self) -> int:
        with self._lock_sequence_counter:
            self._sequence_counter += 1
            return self._sequence_counter

    # accessors
    @property
    def is_closed(self) -> bool:
        with self._lock_state:
            return self._is_closed

    @property
    def session_token(self) -> str | None:
        return self._credentials.session_token

    @property
    def master_token(self) -> str | None:
        return self._credentials.master_token

    @property
    def master_validity_in_seconds(self) -> int:
        return self._credentials.master_validity_in_seconds

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def server_url(self) -> str | None:
        if self._config is not None:
            return self._config.server_url
        return self._properties.get("server_url")

    @property
    def database(self) -> str | None:
        return self._database if not self.is_closed else self._properties.get("database")

    @property
    def schema(self) -> str | None:
        return self._schema if not self.is_closed else self._properties.get("schema")

    @property
    def role(self) -> str | None:
        return self._role if not self.is_closed else self._properties.get("role")

    @property
    def warehouse(self) -> str | None:
        return (
            self._warehouse if not self.is_closed else self._properties.get("warehouse")
        )

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def autocommit(self) -> bool | None:
        return self._autocommit

    @property
    def server_version(self) -> str | None:
        return self._server_version

    @property
    def common_params(self) -> dict[str, Any]:
        return dict(self._common_params)

    @property
    def login_timeout(self) -> int:
        return self._login_timeout

    @property
    def network_timeout(self) -> int:
        return self._network_timeout

    @property
    def auth_timeout(self) -> int:
        return self._auth_timeout

    @property
    def http_client_socket_timeout(self) -> int:
        return self._http_client_socket_timeout

    @property
    def http_client_connection_timeout(self) -> int:
        return self._http_client_connection_timeout

    @property
    def inject_client_pause(self) -> int:
        return self._inject_client_pause

    @property
    def inject_socket_timeout(self) -> int:
        return self._inject_socket_timeout

    @property
    def passcode_in_password(self) -> bool:
        return self._passcode_in_password

    @property
    def validate_default_parameters(self) -> bool:
        return self._validate_default_parameters

    @property
    def tracing(self) -> str | None:
        return self._tracing

    @property
    def heartbeat_frequency(self) -> int | None:
        if self._config is not None:
            return self._config.heartbeat_frequency
        return self._properties.get("client_session_keep_alive_heartbeat_frequency")


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "on", "yes", "1")
    return bool(value)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
