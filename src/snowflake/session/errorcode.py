#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

# network
ER_FAILED_TO_CONNECT_TO_DB = 250001
ER_CONNECTION_IS_CLOSED = 250002
ER_FAILED_TO_REQUEST = 250003
ER_IDP_CONNECTION_ERROR = 250006
ER_INCORRECT_DESTINATION = 250007
ER_UNABLE_TO_OPEN_BROWSER = 250008
ER_FAILED_TO_RENEW_SESSION = 250011
ER_FAILED_TO_CLOSE_SESSION = 250012
ER_FAILED_TO_HEARTBEAT = 250013
ER_FAILED_TO_GET_QUERY_STATUS = 250014

# connection
ER_NO_USER = 251005
ER_NO_PASSWORD = 251006
ER_INVALID_PRIVATE_KEY = 251008
ER_NO_SERVER_URL = 251009
ER_MISSING_CONNECTION_PROPERTY = 251010
ER_INVALID_PROXY_PROPERTIES = 251011
ER_INVALID_PROPERTY_TYPE = 251012
ER_DUPLICATE_CONNECTION_PROPERTY = 251013
ER_TOO_MANY_SESSION_PARAMETERS = 251014
ER_CONNECTION_ESTABLISHED_WITH_DIFFERENT_PROP = 251015
ER_SESSION_RENEWAL_LIMIT_EXCEEDED = 251016

# query
ER_QUERY_CANCELLED = 252005
ER_INTERNAL_ERROR = 252006

# http
ER_HTTP_GENERAL_ERROR = 290000
