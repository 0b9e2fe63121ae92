#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

SQLSTATE_CONNECTION_WAS_NOT_ESTABLISHED = "08001"
SQLSTATE_IO_ERROR = "58030"
SQLSTATE_INVALID_CONNECTION_STRING = "08S01"
SQLSTATE_QUERY_CANCELED = "57014"
SQLSTATE_WARNING = "01000"
