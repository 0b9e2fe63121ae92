#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .constants import NO_ERROR_CODE_FROM_SERVER, SESSION_EXPIRED_GS_CODE, QueryStatus
from .errorcode import ER_FAILED_TO_GET_QUERY_STATUS, ER_INTERNAL_ERROR
from .errors import QueryStatusRequestFailed
from .retry import AttemptResult
from .secret_detector import SecretDetector
from .sqlstate import SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "No error reported"

__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "QueryStatus",
    "QueryStatusResult",
    "parse_query_status_response",
]


@dataclass(frozen=True)
class QueryStatusResult:
    """A query's status together with the error the server attached to it."""

    query_id: str
    status: QueryStatus
    error_code: int = 0
    error_message: str = DEFAULT_ERROR_MESSAGE

    @property
    def is_still_running(self) -> bool:
        return self.status.is_still_running

    @property
    def is_an_error(self) -> bool:
        return self.status.is_an_error


def parse_query_status_response(
    raw: str, query_id: str
) -> AttemptResult[QueryStatusResult]:
    """Interprets a body returned by the query monitoring endpoint.

    An expired session yields an ``expired`` result, any other server failure
    or an unreadable body a ``fatal`` one. An erroneous status always carries
    an error code, ``ER_INTERNAL_ERROR`` when the server did not send one.
    """
    try:
        ret: dict[str, Any] = json.loads(raw)
        if not isinstance(ret, dict):
            raise ValueError("not a JSON object")
    except (TypeError, ValueError) as e:
        return AttemptResult.fatal(
            QueryStatusRequestFailed(
                msg=f"No response or invalid response from GET request. Error: {e}",
                errno=ER_FAILED_TO_GET_QUERY_STATUS,
                sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
                sfqid=query_id,
            )
        )

    if not ret.get("success"):
        logger.debug("response = %s", SecretDetector.mask_secrets(raw).masked_text)
        code = ret.get("code")
        if str(code) == SESSION_EXPIRED_GS_CODE:
            return AttemptResult.expired()
        return AttemptResult.fatal(
            QueryStatusRequestFailed(
                msg=ret.get("message"),
                errno=_to_int(code) or ER_FAILED_TO_GET_QUERY_STATUS,
                sqlstate=SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED,
                sfqid=query_id,
            )
        )

    queries = (ret.get("data") or {}).get("queries") or []
    status_text, error_message, error_code = "", "", 0
    if queries:
        status_text = queries[0].get("status") or ""
        error_message = queries[0].get("errorMessage") or ""
        error_code = _to_int(queries[0].get("errorCode"))
    logger.debug("Query status: %s", status_text)

    status = QueryStatus.from_string(status_text)
    message = DEFAULT_ERROR_MESSAGE
    if error_code != 0:
        code = error_code
    elif status.is_an_error:
        code = ER_INTERNAL_ERROR
        message = NO_ERROR_CODE_FROM_SERVER
    else:
        code = 0
    # a message from the server wins over the default one
    if error_message and error_message.lower() != "null":
        message = error_message
    return AttemptResult.ok(QueryStatusResult(query_id, status, code, message))


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
