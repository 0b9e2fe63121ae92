#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

"""Wire level login, renew and close exchanges.

The session state machine only depends on the ``AuthenticatorClient``
protocol. ``SnowflakeLoginClient`` is the default implementation, speaking
JSON over a ``Transport``.
"""
from __future__ import annotations

import base64
import copy
import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from html import unescape
from typing import Any, Callable, Protocol
from urllib.parse import urlencode, urlsplit

import jwt
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric.ec import (
    SECP256R1,
    SECP384R1,
    SECP521R1,
    EllipticCurvePrivateKey,
)
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_der_private_key,
    load_pem_private_key,
)

from .constants import (
    ACCEPT_TYPE_APPLICATION_SNOWFLAKE,
    CONTENT_TYPE_APPLICATION_JSON,
    DEFAULT_AUTHENTICATOR,
    DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT,
    DEFAULT_LOGIN_TIMEOUT,
    EXTERNAL_BROWSER_AUTHENTICATOR,
    HEADER_AUTHORIZATION_KEY,
    HEADER_SNOWFLAKE_TOKEN,
    HTTP_HEADER_ACCEPT,
    HTTP_HEADER_CONTENT_TYPE,
    HTTP_HEADER_SERVICE_NAME,
    HTTP_HEADER_USER_AGENT,
    KEY_PAIR_AUTHENTICATOR,
    OAUTH_AUTHENTICATOR,
    OKTA_AUTHENTICATOR_PREFIX,
    PARAMETER_AUTOCOMMIT,
    PARAMETER_SERVICE_NAME,
    REAUTHENTICATION_REQUIRED_GS_CODES,
    REQUEST_ID,
    REQUEST_TYPE_RENEW,
    SF_PATH_AUTHENTICATOR_REQUEST,
    SF_PATH_LOGIN_REQUEST,
    SF_PATH_SESSION,
    SF_PATH_TOKEN_REQUEST,
    USR_PWD_MFA_AUTHENTICATOR,
)
from .description import (
    CLIENT_NAME,
    CLIENT_VERSION,
    COMPILER,
    IMPLEMENTATION,
    OPERATING_SYSTEM,
    PLATFORM,
    PYTHON_VERSION,
    USER_AGENT,
)
from .errorcode import (
    ER_FAILED_TO_CLOSE_SESSION,
    ER_FAILED_TO_CONNECT_TO_DB,
    ER_FAILED_TO_RENEW_SESSION,
    ER_IDP_CONNECTION_ERROR,
    ER_INCORRECT_DESTINATION,
    ER_INVALID_PRIVATE_KEY,
    ER_UNABLE_TO_OPEN_BROWSER,
)
from .errors import (
    Error,
    ProgrammingError,
    ReauthenticationRequired,
    SessionCloseFailed,
    SessionEstablishmentFailed,
    SessionRenewalFailed,
)
from .secret_detector import SecretDetector
from .sqlstate import SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED
from .transport import HttpClientSettingsKey, HttpRequest, Transport

logger = logging.getLogger(__name__)

ID_TOKEN_AUTHENTICATOR = "ID_TOKEN"

# Keys in the login body that may be logged as they are
AUTHENTICATION_REQUEST_KEY_WHITELIST = {
    "ACCOUNT_NAME",
    "AUTHENTICATOR",
    "CLIENT_APP_ID",
    "CLIENT_APP_VERSION",
    "CLIENT_ENVIRONMENT",
    "EXT_AUTHN_DUO_METHOD",
    "LOGIN_NAME",
    "SESSION_PARAMETERS",
}

# parameters returned at login that the session applies to itself
COMMON_PARAMETER_NAMES = frozenset(
    (
        "CLIENT_SESSION_KEEP_ALIVE",
        "CLIENT_SESSION_KEEP_ALIVE_HEARTBEAT_FREQUENCY",
        "CLIENT_VALIDATE_DEFAULT_PARAMETERS",
        "CLIENT_STORE_TEMPORARY_CREDENTIAL",
        PARAMETER_AUTOCOMMIT,
        PARAMETER_SERVICE_NAME,
    )
)


@dataclass
class LoginInput:
    """Everything a login, renew or close exchange may need."""

    server_url: str
    account: str | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)
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
    database: str | None = None
    schema: str | None = None
    warehouse: str | None = None
    role: str | None = None
    application: str | None = None
    app_id: str | None = None
    app_version: str | None = None
    login_timeout: int = DEFAULT_LOGIN_TIMEOUT
    network_timeout: int = 0
    auth_timeout: int = 0
    socket_timeout: int = DEFAULT_HTTP_CLIENT_SOCKET_TIMEOUT
    validate_default_parameters: bool = False
    tracing: str | None = None
    service_name: str | None = None
    session_token: str | None = field(default=None, repr=False)
    master_token: str | None = field(default=None, repr=False)
    id_token: str | None = field(default=None, repr=False)
    mfa_token: str | None = field(default=None, repr=False)
    session_parameters: dict[str, Any] = field(default_factory=dict)
    settings_key: HttpClientSettingsKey = field(default_factory=HttpClientSettingsKey)


@dataclass
class LoginOutput:
    """Structured result of a login or renew exchange."""

    session_token: str | None = field(default=None, repr=False)
    master_token: str | None = field(default=None, repr=False)
    id_token: str | None = field(default=None, repr=False)
    mfa_token: str | None = field(default=None, repr=False)
    master_validity_in_seconds: int | None = None
    session_id: str | None = None
    database: str | None = None
    schema: str | None = None
    warehouse: str | None = None
    role: str | None = None
    autocommit: bool | None = None
    http_client_socket_timeout: int | None = None
    server_version: str | None = None
    common_params: dict[str, Any] = field(default_factory=dict)


class AuthenticatorClient(Protocol):
    def authenticate(self, login_input: LoginInput) -> LoginOutput:
        ...

    def renew(self, login_input: LoginInput) -> LoginOutput:
        ...

    def close(self, login_input: LoginInput) -> None:
        ...


def _is_prefix_equal(url1: str, url2: str) -> bool:
    """Checks if URL prefixes are identical.

    The scheme, hostname and port number are compared. If the port number is
    not specified and the scheme is https, the port number is assumed to be
    443.
    """
    parsed_url1 = urlsplit(url1)
    parsed_url2 = urlsplit(url2)

    port1 = parsed_url1.port
    if not port1 and parsed_url1.scheme == "https":
        port1 = 443
    port2 = parsed_url2.port
    if not port2 and parsed_url2.scheme == "https":
        port2 = 443

    return (
        parsed_url1.hostname == parsed_url2.hostname
        and port1 == port2
        and parsed_url1.scheme == parsed_url2.scheme
    )


def _get_post_back_url_from_html(html: str) -> str:
    """Gets the post back URL.

    The first discovered form is assumed to be the form to post back and the
    URL is taken from its action attribute.
    """
    idx = html.find("<form")
    start_idx = html.find('action="', idx)
    end_idx = html.find('"', start_idx + 8)
    return unescape(html[start_idx + 8 : end_idx])


def calculate_public_key_fingerprint(private_key) -> str:
    # get public key bytes
    public_key_der = private_key.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )

    # take sha256 on raw bytes and then do base64 encode
    sha256hash = hashlib.sha256()
    sha256hash.update(public_key_der)

    public_key_fp = "SHA256:" + base64.b64encode(sha256hash.digest()).decode("utf-8")
    logger.debug("Public key fingerprint is %s", public_key_fp)

    return public_key_fp


def load_private_key(login_input: LoginInput):
    """Returns the private key object from the in-memory key or the key file."""
    password = login_input.private_key_file_pwd
    if isinstance(password, str):
        password = password.encode()
    key = login_input.private_key
    try:
        if key is None and login_input.private_key_file:
            with open(login_input.private_key_file, "rb") as key_file:
                return load_pem_private_key(
                    key_file.read(), password=password, backend=default_backend()
                )
        if isinstance(key, str):
            key = base64.b64decode(key)
        if isinstance(key, bytes):
            return load_der_private_key(
                data=key, password=password, backend=default_backend()
            )
    except (OSError, ValueError, TypeError) as e:
        raise ProgrammingError(
            msg=f"Failed to load private key: {e}\nPlease provide a valid "
            "RSA or ECDSA private key, either in DER format as bytes or in a "
            "PEM file. If the key is encrypted, provide its password",
            errno=ER_INVALID_PRIVATE_KEY,
        ) from e
    if isinstance(key, (RSAPrivateKey, EllipticCurvePrivateKey)):
        return key
    raise ProgrammingError(
        msg="Key pair authentication needs a private key or a private key file",
        errno=ER_INVALID_PRIVATE_KEY,
    )


def make_jwt_token(
    account: str, user: str, private_key, lifetime_in_seconds: int = 60
) -> str:
    """Signs the JWT used by key pair authentication."""
    if ".global" in account:
        account = account.partition("-")[0]
    else:
        account = account.partition(".")[0]
    account = account.upper()
    user = user.upper()

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    public_key_fp = calculate_public_key_fingerprint(private_key)
    payload = {
        "iss": f"{account}.{user}.{public_key_fp}",
        "sub": f"{account}.{user}",
        "iat": now,
        "exp": now + timedelta(seconds=lifetime_in_seconds),
    }

    # select algorithm based on key type and curve
    if isinstance(private_key, EllipticCurvePrivateKey):
        curve = private_key.curve
        if isinstance(curve, SECP256R1):
            algorithm = "ES256"
        elif isinstance(curve, SECP384R1):
            algorithm = "ES384"
        elif isinstance(curve, SECP521R1):
            algorithm = "ES512"
        else:
            raise ProgrammingError(
                msg=f"Unsupported EC curve: {curve.name}. Supported: SECP256R1, SECP384R1, SECP521R1",
                errno=ER_INVALID_PRIVATE_KEY,
            )
    else:
        algorithm = "RS256"
    return jwt.encode(payload, private_key, algorithm=algorithm)


class SnowflakeLoginClient:
    """Performs the login, renew and close exchanges over a Transport.

    ``browser_handler`` is called with the SSO URL for the external browser
    authenticator and must return the token the identity provider hands back;
    without it, external browser logins only work with a cached id token.
    """

    def __init__(
        self,
        transport: Transport,
        browser_handler: Callable[[str], str] | None = None,
    ) -> None:
        self._transport = transport
        self._browser_handler = browser_handler

    # helpers
    @staticmethod
    def _headers(login_input: LoginInput, accept: str) -> dict[str, str]:
        headers = {
            HTTP_HEADER_CONTENT_TYPE: CONTENT_TYPE_APPLICATION_JSON,
            HTTP_HEADER_ACCEPT: accept,
            HTTP_HEADER_USER_AGENT: USER_AGENT,
        }
        if login_input.service_name:
            headers[HTTP_HEADER_SERVICE_NAME] = login_input.service_name
        return headers

    def _post(
        self,
        login_input: LoginInput,
        url: str,
        headers: dict[str, str],
        body: dict[str, Any] | None,
        token: str | None = None,
        retry_count: int = 0,
    ) -> dict[str, Any]:
        if token is not None:
            headers = dict(headers)
            headers[HEADER_AUTHORIZATION_KEY] = HEADER_SNOWFLAKE_TOKEN.format(
                token=token
            )
        if not url.startswith("http"):
            url = f"{login_input.server_url.rstrip('/')}{url}"
        raw = self._transport.execute_request(
            HttpRequest(
                "POST",
                url,
                headers,
                json.dumps(body) if body is not None else None,
            ),
            login_input.login_timeout,
            login_input.auth_timeout,
            login_input.socket_timeout,
            retry_count,
            login_input.settings_key,
        )
        return self._parse(raw)

    @staticmethod
    def _parse(raw: str) -> dict[str, Any]:
        try:
            ret = json.loads(raw) if raw else {}
        except ValueError:
            logger.debug(
                "Invalid JSON in response: %s",
                SecretDetector.mask_secrets(raw).masked_text,
            )
            raise SessionEstablishmentFailed(
                msg="Invalid response from the server, expected JSON",
            )
        return ret if isinstance(ret, dict) else {}

    @staticmethod
    def base_auth_data(login_input: LoginInput) -> dict[str, Any]:
        return {
            "data": {
                "CLIENT_APP_ID": login_input.app_id or CLIENT_NAME,
                "CLIENT_APP_VERSION": login_input.app_version or CLIENT_VERSION,
                "ACCOUNT_NAME": login_input.account,
                "LOGIN_NAME": login_input.user,
                "CLIENT_ENVIRONMENT": {
                    "APPLICATION": login_input.application,
                    "OS": OPERATING_SYSTEM,
                    "OS_VERSION": PLATFORM,
                    "PYTHON_VERSION": PYTHON_VERSION,
                    "PYTHON_RUNTIME": IMPLEMENTATION,
                    "PYTHON_COMPILER": COMPILER,
                    "TRACING": login_input.tracing,
                    "LOGIN_TIMEOUT": login_input.login_timeout,
                    "NETWORK_TIMEOUT": login_input.network_timeout,
                },
            },
        }

    # login
    def authenticate(self, login_input: LoginInput) -> LoginOutput:
        authenticator = login_input.authenticator
        logger.debug("authenticate, authenticator=%s", authenticator)
        body = copy.deepcopy(self.base_auth_data(login_input))
        data = body["data"]

        try:
            if authenticator.upper().startswith(OKTA_AUTHENTICATOR_PREFIX):
                data["RAW_SAML_RESPONSE"] = self._okta_saml_response(login_input)
            elif authenticator == EXTERNAL_BROWSER_AUTHENTICATOR:
                if login_input.id_token:
                    data["AUTHENTICATOR"] = ID_TOKEN_AUTHENTICATOR
                    data["TOKEN"] = login_input.id_token
                else:
                    token, proof_key = self._browser_token(login_input)
                    data["AUTHENTICATOR"] = EXTERNAL_BROWSER_AUTHENTICATOR
                    data["TOKEN"] = token
                    data["PROOF_KEY"] = proof_key
            elif authenticator == KEY_PAIR_AUTHENTICATOR:
                data["AUTHENTICATOR"] = KEY_PAIR_AUTHENTICATOR
                data["TOKEN"] = make_jwt_token(
                    login_input.account or "",
                    login_input.user or "",
                    load_private_key(login_input),
                )
            elif authenticator == OAUTH_AUTHENTICATOR:
                data["AUTHENTICATOR"] = OAUTH_AUTHENTICATOR
                data["TOKEN"] = login_input.token
            elif authenticator == USR_PWD_MFA_AUTHENTICATOR:
                data["PASSWORD"] = login_input.password
                if login_input.mfa_token:
                    data["TOKEN"] = login_input.mfa_token
            else:
                data["PASSWORD"] = login_input.password
        except SessionEstablishmentFailed:
            raise
        except Error as err:
            raise SessionEstablishmentFailed(
                msg=f"Failed to prepare the login request: {err.raw_msg}",
                errno=err.errno if err.errno != -1 else None,
            ) from err

        if login_input.passcode_in_password:
            data["EXT_AUTHN_DUO_METHOD"] = "passcode"
        elif login_input.passcode:
            data["EXT_AUTHN_DUO_METHOD"] = "passcode"
            data["PASSCODE"] = login_input.passcode

        if login_input.session_parameters:
            data["SESSION_PARAMETERS"] = dict(login_input.session_parameters)

        url_parameters = {"request_id": str(uuid.uuid4())}
        if login_input.database is not None:
            url_parameters["databaseName"] = login_input.database
        if login_input.schema is not None:
            url_parameters["schemaName"] = login_input.schema
        if login_input.warehouse is not None:
            url_parameters["warehouse"] = login_input.warehouse
        if login_input.role is not None:
            url_parameters["roleName"] = login_input.role
        url = SF_PATH_LOGIN_REQUEST + "?" + urlencode(url_parameters)

        logger.debug(
            "account=%s, user=%s, database=%s, schema=%s, "
            "warehouse=%s, role=%s, request_id=%s",
            login_input.account,
            login_input.user,
            login_input.database,
            login_input.schema,
            login_input.warehouse,
            login_input.role,
            url_parameters["request_id"],
        )
        logger.debug(
            "body['data']: %s",
            {
                k: v if k in AUTHENTICATION_REQUEST_KEY_WHITELIST else "******"
                for (k, v) in data.items()
            },
        )

        try:
            ret = self._post(
                login_input,
                url,
                self._headers(login_input, ACCEPT_TYPE_APPLICATION_SNOWFLAKE),
                body,
            )
        except Error as err:
            raise SessionEstablishmentFailed(
                msg=f"Failed to connect to DB: {login_input.server_url}. {err.raw_msg}",
            ) from err

        if not ret.get("success"):
            raise SessionEstablishmentFailed(
                msg=(
                    f"Failed to connect to DB: {login_input.server_url}. "
                    f"{ret.get('message')}"
                ),
                errno=_int_or_none(ret.get("code")) or ER_FAILED_TO_CONNECT_TO_DB,
            )
        if not ret.get("data"):
            raise SessionEstablishmentFailed(
                msg="There is no data in the returning response, please retry the operation."
            )
        return self._login_output(ret["data"], login_input)

    @staticmethod
    def _login_output(data: dict[str, Any], login_input: LoginInput) -> LoginOutput:
        logger.debug(
            "token = %s, master_token = %s, id_token = %s, mfa_token = %s",
            "******" if data.get("token") is not None else "NULL",
            "******" if data.get("masterToken") is not None else "NULL",
            "******" if data.get("idToken") is not None else "NULL",
            "******" if data.get("mfaToken") is not None else "NULL",
        )
        session_info = data.get("sessionInfo") or {}
        common_params = {
            p["name"]: p["value"]
            for p in data.get("parameters") or []
            if p.get("name") in COMMON_PARAMETER_NAMES
        }
        autocommit = common_params.get(PARAMETER_AUTOCOMMIT)
        return LoginOutput(
            session_token=data.get("token"),
            master_token=data.get("masterToken"),
            id_token=data.get("idToken"),
            mfa_token=data.get("mfaToken"),
            master_validity_in_seconds=data.get("masterValidityInSeconds"),
            session_id=(
                str(data["sessionId"]) if data.get("sessionId") is not None else None
            ),
            database=session_info.get("databaseName"),
            schema=session_info.get("schemaName"),
            warehouse=session_info.get("warehouseName"),
            role=session_info.get("roleName"),
            autocommit=None if autocommit is None else bool(autocommit),
            http_client_socket_timeout=login_input.socket_timeout,
            server_version=data.get("serverVersion"),
            common_params=common_params,
        )

    def _authenticator_request(
        self, login_input: LoginInput, extra: dict[str, Any]
    ) -> dict[str, Any]:
        body = self.base_auth_data(login_input)
        body["data"]["AUTHENTICATOR"] = login_input.authenticator
        body["data"].update(extra)
        ret = self._post(
            login_input,
            SF_PATH_AUTHENTICATOR_REQUEST,
            self._headers(login_input, CONTENT_TYPE_APPLICATION_JSON),
            body,
        )
        if not ret.get("success") or not ret.get("data"):
            raise SessionEstablishmentFailed(
                msg=f"Failed to get the SSO URL: {ret.get('message')}",
                errno=_int_or_none(ret.get("code")) or ER_IDP_CONNECTION_ERROR,
            )
        return ret["data"]

    def _okta_saml_response(self, login_input: LoginInput) -> str:
        """Native Okta SAML authentication.

        The token and SSO URLs must share the prefix of the authenticator URL,
        and the post back URL of the SAML response must point at the server.
        """
        authenticator = login_input.authenticator
        logger.debug("step 1: query GS to obtain IDP token and SSO url")
        data = self._authenticator_request(login_input, {})
        token_url, sso_url = data.get("tokenUrl"), data.get("ssoUrl")

        logger.debug("step 2: validate Token and SSO URL has the same prefix")
        if not (
            token_url
            and sso_url
            and _is_prefix_equal(authenticator, token_url)
            and _is_prefix_equal(authenticator, sso_url)
        ):
            raise SessionEstablishmentFailed(
                msg=(
                    f"The specified authenticator is not supported: {authenticator}, "
                    f"token_url: {token_url}, sso_url: {sso_url}"
                ),
                errno=ER_IDP_CONNECTION_ERROR,
            )

        logger.debug("step 3: query IDP token url to retrieve a one time token")
        ret = self._post(
            login_input,
            token_url,
            self._headers(login_input, CONTENT_TYPE_APPLICATION_JSON),
            {
                "username": login_input.okta_username or login_input.user,
                "password": login_input.password,
            },
        )
        one_time_token = ret.get("sessionToken") or ret.get("cookieToken")
        if not one_time_token:
            raise SessionEstablishmentFailed(
                msg=f"The authentication failed for {login_input.user} by {token_url}.",
                errno=ER_IDP_CONNECTION_ERROR,
            )

        logger.debug("step 4: query IDP URL snowflake app to get SAML response")
        url_parameters = {
            "RelayState": "/some/deep/link",
            "onetimetoken": one_time_token,
        }
        response_html = self._transport.execute_request(
            HttpRequest(
                "GET",
                sso_url + "?" + urlencode(url_parameters),
                {HTTP_HEADER_ACCEPT: "*/*"},
            ),
            login_input.login_timeout,
            login_input.auth_timeout,
            login_input.socket_timeout,
            0,
            login_input.settings_key,
        )

        logger.debug("step 5: validate post_back_url matches Snowflake URL")
        post_back_url = _get_post_back_url_from_html(response_html)
        if not _is_prefix_equal(post_back_url, login_input.server_url):
            raise SessionEstablishmentFailed(
                msg=(
                    "The specified authenticator and destination URL in the SAML "
                    f"assertion do not match: expected: {login_input.server_url}, "
                    f"post back: {post_back_url}"
                ),
                errno=ER_INCORRECT_DESTINATION,
            )
        return response_html

    def _browser_token(self, login_input: LoginInput) -> tuple[str, str | None]:
        if self._browser_handler is None:
            raise SessionEstablishmentFailed(
                msg="External browser authentication needs a browser handler",
                errno=ER_UNABLE_TO_OPEN_BROWSER,
            )
        data = self._authenticator_request(login_input, {})
        sso_url = data.get("ssoUrl")
        if not sso_url:
            raise SessionEstablishmentFailed(
                msg="The server did not return an SSO URL",
                errno=ER_IDP_CONNECTION_ERROR,
            )
        return self._browser_handler(sso_url), data.get("proofKey")

    # renew
    def renew(self, login_input: LoginInput) -> LoginOutput:
        logger.debug(
            "updating session. master_token: %s",
            "****" if login_input.master_token else None,
        )
        request_id = str(uuid.uuid4())
        logger.debug("request_id: %s", request_id)
        url = SF_PATH_TOKEN_REQUEST + "?" + urlencode({REQUEST_ID: request_id})
        body = {
            "oldSessionToken": login_input.session_token,
            "requestType": REQUEST_TYPE_RENEW,
        }
        try:
            # ensure an empty key if master token is not set, avoids HTTP 400
            ret = self._post(
                login_input,
                url,
                self._headers(login_input, CONTENT_TYPE_APPLICATION_JSON),
                body,
                token=login_input.master_token or "",
            )
        except Error as err:
            raise SessionRenewalFailed(
                msg=f"Failed to renew session: {err.raw_msg}"
            ) from err

        data = ret.get("data") or {}
        if ret.get("success") and data.get("sessionToken"):
            logger.debug("success: %s", SecretDetector.mask_secrets(str(ret)).masked_text)
            logger.debug("updating session completed")
            return LoginOutput(
                session_token=data["sessionToken"],
                master_token=data.get("masterToken"),
                master_validity_in_seconds=data.get("masterValidityInSeconds"),
            )

        logger.debug("failed: %s", SecretDetector.mask_secrets(str(ret)).masked_text)
        err = ret.get("message")
        if err is not None and data:
            err += data.get("errorMessage", "")
        errno = ret.get("code") or ER_FAILED_TO_RENEW_SESSION
        if str(errno) in REAUTHENTICATION_REQUIRED_GS_CODES:
            raise ReauthenticationRequired(
                ProgrammingError(
                    msg=err,
                    errno=int(errno),
                    sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
                )
            )
        raise SessionRenewalFailed(msg=err, errno=_int_or_none(errno))

    # close
    def close(self, login_input: LoginInput) -> None:
        url = SF_PATH_SESSION + "?" + urlencode({"delete": "true"})
        try:
            ret = self._post(
                login_input,
                url,
                self._headers(login_input, CONTENT_TYPE_APPLICATION_JSON),
                {},
                token=login_input.session_token,
                retry_count=1,
            )
        except Error as err:
            raise SessionCloseFailed(
                msg=f"Failed to close session: {err.raw_msg}",
                errno=ER_FAILED_TO_CLOSE_SESSION,
            ) from err
        if ret and not ret.get("success"):
            err = ret.get("message")
            if err is not None and ret.get("data"):
                err += ret["data"].get("errorMessage", "")
            raise SessionCloseFailed(
                msg=f"Failed to close session: {err}",
                errno=_int_or_none(ret.get("code")) or ER_FAILED_TO_CLOSE_SESSION,
            )


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
