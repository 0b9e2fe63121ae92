#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

"""Recognized session properties and the immutable configuration built from them.

Every key a caller hands to ``Session.set_property`` is looked up here. Known
keys are coerced to their declared type; anything else becomes a dynamic
session parameter passed through to the server at login.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple

from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .constants import (
    DEFAULT_AUTHENTICATOR,
    DEFAULT_HEARTBEAT_FREQUENCY,
    DEFAULT_HTTP_CLIENT_CONNECTION_TIMEOUT,
    DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT,
    DEFAULT_LOGIN_TIMEOUT,
    DEFAULT_NETWORK_TIMEOUT,
    EXTERNAL_BROWSER_AUTHENTICATOR,
    KEY_PAIR_AUTHENTICATOR,
    OKTA_AUTHENTICATOR_PREFIX,
    USR_PWD_MFA_AUTHENTICATOR,
)
from .errors import InvalidPropertyType
from .transport import HttpClientSettingsKey

_TRUE_VALUES = ("true", "on", "yes", "1")
_FALSE_VALUES = ("false", "off", "no", "0")

# java.util.logging names are accepted too
TRACING_LEVELS = {
    "OFF": logging.CRITICAL + 10,
    "SEVERE": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "CONFIG": logging.INFO,
    "FINE": logging.DEBUG,
    "FINER": logging.DEBUG,
    "FINEST": logging.DEBUG,
    "DEBUG": logging.DEBUG,
    "ALL": logging.DEBUG,
}


class PropertySpec(NamedTuple):
    default: Any
    types: type | tuple[type, ...]
    required: bool = False


SESSION_PROPERTIES: dict[str, PropertySpec] = {
    "server_url": PropertySpec(None, str, True),
    "account": PropertySpec(None, str, True),
    "user": PropertySpec(None, str),
    "password": PropertySpec(None, str),
    "database": PropertySpec(None, str),
    "schema": PropertySpec(None, str),
    "warehouse": PropertySpec(None, str),
    "role": PropertySpec(None, str),
    "authenticator": PropertySpec(None, str),
    "okta_username": PropertySpec(None, str),
    "token": PropertySpec(None, str),  # OAuth token
    "passcode_in_password": PropertySpec(False, bool),  # MFA
    "passcode": PropertySpec(None, str),  # MFA
    "private_key": PropertySpec(
        None, (bytes, str, RSAPrivateKey, EllipticCurvePrivateKey)
    ),
    "private_key_file": PropertySpec(None, str),
    "private_key_file_pwd": PropertySpec(None, (str, bytes)),
    "application": PropertySpec(None, str),
    "app_id": PropertySpec(None, str),
    "app_version": PropertySpec(None, str),
    "login_timeout": PropertySpec(DEFAULT_LOGIN_TIMEOUT, int),
    "network_timeout": PropertySpec(DEFAULT_NETWORK_TIMEOUT, int),
    "inject_client_pause": PropertySpec(0, int),  # testing only
    "inject_socket_timeout": PropertySpec(0, int),  # testing only
    "tracing": PropertySpec(None, str),
    "disable_socks_proxy": PropertySpec(False, bool),
    "validate_default_parameters": PropertySpec(False, bool),
    "use_proxy": PropertySpec(False, bool),
    "proxy_host": PropertySpec(None, str),
    "proxy_port": PropertySpec(None, int),
    "proxy_user": PropertySpec(None, str),
    "proxy_password": PropertySpec(None, str),
    "non_proxy_hosts": PropertySpec(None, str),
    "proxy_protocol": PropertySpec("http", str),
    "client_session_keep_alive": PropertySpec(None, bool),
    "client_session_keep_alive_heartbeat_frequency": PropertySpec(None, int),
}


def lookup_property(name: str) -> str | None:
    """Returns the canonical name of a recognized property, matching case-insensitively."""
    key = name.lower()
    return key if key in SESSION_PROPERTIES else None


def check_property_value(name: str, value: Any) -> Any:
    """Coerces value to the declared type of the named property.

    Strings are accepted for integer and boolean properties. None is always
    accepted.

    Raises:
        InvalidPropertyType: If the value cannot be coerced.
    """
    spec = SESSION_PROPERTIES[name]
    if name == "tracing" and value is not None:
        return _check_tracing_level(value)
    if value is None or isinstance(value, spec.types) and not (
        spec.types is int and isinstance(value, bool)
    ):
        return value

    if spec.types is bool:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        elif isinstance(value, int):
            return bool(value)
    elif spec.types is int:
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
    elif spec.types is str and isinstance(value, (int, float)):
        return str(value)

    raise InvalidPropertyType(
        msg=(
            f"Invalid value type for connection property {name}: "
            f"expected {_type_names(spec.types)}, got {type(value).__name__}"
        )
    )


def _check_tracing_level(value: Any) -> str:
    level = str(value).strip().upper()
    if level not in TRACING_LEVELS:
        raise InvalidPropertyType(msg=f"Invalid tracing level: {value}")
    return level


def _type_names(types: type | tuple[type, ...]) -> str:
    if isinstance(types, tuple):
        return " or ".join(t.__name__ for t in types)
    return types.__name__


def resolve_authenticator(
    authenticator: str | None, has_private_key: bool = False
) -> str:
    """Normalizes the authenticator name.

    A missing authenticator means password authentication, unless a private
    key was given in which case key pair authentication is assumed. Okta URLs
    are returned unchanged.
    """
    if not authenticator:
        return KEY_PAIR_AUTHENTICATOR if has_private_key else DEFAULT_AUTHENTICATOR
    if authenticator.upper().startswith(OKTA_AUTHENTICATOR_PREFIX):
        return authenticator
    return authenticator.upper()


def requires_user_and_password(authenticator: str) -> bool:
    return (
        authenticator in (DEFAULT_AUTHENTICATOR, USR_PWD_MFA_AUTHENTICATOR)
        or authenticator.upper().startswith(OKTA_AUTHENTICATOR_PREFIX)
    )


@dataclass(frozen=True)
class SessionConfig:
    """Immutable view of a session's settings, taken once the sanity check passes."""

    server_url: str
    account: str | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    database: str | None = None
    schema: str | None = None
    warehouse: str | None = None
    role: str | None = None
    authenticator: str = DEFAULT_AUTHENTICATOR
    okta_username: str | None = None
    token: str | None = field(default=None, repr=False)
    passcode_in_password: bool = False
    passcode: str | None = field(default=None, repr=False)
    private_key: bytes | str | RSAPrivateKey | EllipticCurvePrivateKey | None = field(
        default=None, repr=False
    )
    private_key_file: str | None = None
    private_key_file_pwd: str | bytes | None = field(default=None, repr=False)
    application: str | None = None
    app_id: str | None = None
    app_version: str | None = None
    login_timeout: int = DEFAULT_LOGIN_TIMEOUT
    network_timeout: int = DEFAULT_NETWORK_TIMEOUT
    auth_timeout: int = 0
    http_client_connection_timeout: int = DEFAULT_HTTP_CLIENT_CONNECTION_TIMEOUT
    http_client_socket_timeout: int = DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT
    validate_default_parameters: bool = False
    client_session_keep_alive: bool = False
    heartbeat_frequency: int = DEFAULT_HEARTBEAT_FREQUENCY
    settings_key: HttpClientSettingsKey = field(default_factory=HttpClientSettingsKey)
    session_parameters: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def copy_with(self, **overrides: Any) -> SessionConfig:
        """Return a new SessionConfig with overrides applied."""
        return replace(self, **overrides)

    @property
    def is_external_browser(self) -> bool:
        return self.authenticator == EXTERNAL_BROWSER_AUTHENTICATOR

    @classmethod
    def from_properties(
        cls,
        properties: Mapping[str, Any],
        session_parameters: Mapping[str, Any],
        login_timeout: int,
        network_timeout: int,
    ) -> SessionConfig:
        """Builds the configuration from validated property values."""

        def get(name: str) -> Any:
            value = properties.get(name)
            return SESSION_PROPERTIES[name].default if value is None else value

        has_private_key = bool(get("private_key") or get("private_key_file"))
        keep_alive = get("client_session_keep_alive")
        frequency = get("client_session_keep_alive_heartbeat_frequency")
        return cls(
            server_url=get("server_url"),
            account=get("account"),
            user=get("user"),
            password=get("password"),
            database=get("database"),
            schema=get("schema"),
            warehouse=get("warehouse"),
            role=get("role"),
            authenticator=resolve_authenticator(get("authenticator"), has_private_key),
            okta_username=get("okta_username"),
            token=get("token"),
            passcode_in_password=get("passcode_in_password"),
            passcode=get("passcode"),
            private_key=get("private_key"),
            private_key_file=get("private_key_file"),
            private_key_file_pwd=get("private_key_file_pwd"),
            application=get("application"),
            app_id=get("app_id"),
            app_version=get("app_version"),
            login_timeout=login_timeout,
            network_timeout=network_timeout,
            validate_default_parameters=get("validate_default_parameters"),
            client_session_keep_alive=bool(keep_alive),
            heartbeat_frequency=(
                frequency if frequency is not None else DEFAULT_HEARTBEAT_FREQUENCY
            ),
            settings_key=HttpClientSettingsKey(
                use_proxy=get("use_proxy"),
                proxy_host=get("proxy_host"),
                proxy_port=get("proxy_port"),
                proxy_user=get("proxy_user"),
                proxy_password=get("proxy_password"),
                non_proxy_hosts=get("non_proxy_hosts"),
                proxy_protocol=get("proxy_protocol"),
            ),
            session_parameters=MappingProxyType(dict(session_parameters)),
        )
