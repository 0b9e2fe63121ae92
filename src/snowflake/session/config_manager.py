#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Any
from warnings import warn

import tomlkit
from tomlkit.items import Table

from .constants import CONNECTIONS_FILE, ENV_VAR_DEFAULT_CONNECTION_NAME
from .errors import ConfigSourceError, MissingConfigOptionError
from .sf_dirs import _resolve_platform_dirs

LOGGER = logging.getLogger(__name__)
READABLE_BY_OTHERS = stat.S_IRGRP | stat.S_IROTH

DEFAULT_CONNECTION_NAME = "default"


def default_connections_file() -> Path:
    """connections.toml in $SNOWFLAKE_HOME if that exists, else in the platform config dir."""
    return Path(_resolve_platform_dirs().user_config_path) / CONNECTIONS_FILE


def _check_permissions(filep: Path) -> None:
    st = filep.stat()
    if st.st_mode & READABLE_BY_OTHERS != 0 or (
        # Windows doesn't have getuid, skip checking
        hasattr(os, "getuid")
        and st.st_uid != 0
        and st.st_uid != os.getuid()
    ):
        warn(f"Bad owner or permissions on {str(filep)}")


def read_connections_file(connections_file_path: Path | None = None) -> tomlkit.TOMLDocument:
    """Read and parse a connections file.

    A missing file reads as an empty document. A file others can read, or
    that is owned by somebody else, only triggers a warning since it may
    hold passwords.
    """
    filep = Path(connections_file_path or default_connections_file())
    if not filep.exists():
        LOGGER.debug("connections file %s does not exist", str(filep))
        return tomlkit.TOMLDocument()
    _check_permissions(filep)
    LOGGER.debug(f"reading configuration file from {str(filep)}")
    try:
        return tomlkit.parse(filep.read_text())
    except Exception as e:
        raise ConfigSourceError(
            msg="An unknown error happened while loading " f"'{str(filep)}'"
        ) from e


def load_connection_parameters(
    connection_name: str | None = None,
    connections_file_path: Path | str | None = None,
) -> dict[str, Any]:
    """Returns the parameters of one connection from connections.toml.

    The connection is connection_name if given, else the value of
    $SNOWFLAKE_DEFAULT_CONNECTION_NAME, else ``default``.

    Raises:
        ConfigSourceError: If the file cannot be parsed or the entry is not a table.
        MissingConfigOptionError: If no such connection is defined.
    """
    if connection_name is None:
        connection_name = os.environ.get(
            ENV_VAR_DEFAULT_CONNECTION_NAME, DEFAULT_CONNECTION_NAME
        )
    document = read_connections_file(
        Path(connections_file_path) if connections_file_path is not None else None
    )
    if connection_name not in document:
        raise MissingConfigOptionError(
            msg=f"Connection '{connection_name}' is not defined in the connections file"
        )
    connection = document[connection_name]
    if not isinstance(connection, Table):
        raise ConfigSourceError(
            msg=f"Connection '{connection_name}' should be a table of parameters"
        )
    return connection.unwrap()


__all__ = [
    "default_connections_file",
    "load_connection_parameters",
    "read_connections_file",
]
