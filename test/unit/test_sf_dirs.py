#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from platformdirs import PlatformDirs

from snowflake.session.config_manager import default_connections_file
from snowflake.session.sf_dirs import SFPlatformDirs, _resolve_platform_dirs


def test_existing_snowflake_home_is_single_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_HOME", str(tmp_path))

    platform_dirs = _resolve_platform_dirs()

    assert isinstance(platform_dirs, SFPlatformDirs)
    assert platform_dirs.user_config_path == tmp_path
    assert platform_dirs.user_cache_path == tmp_path
    assert platform_dirs.user_log_path == tmp_path


def test_missing_snowflake_home_uses_platform_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_HOME", str(tmp_path / "missing"))

    platform_dirs = _resolve_platform_dirs()

    assert type(platform_dirs) is PlatformDirs
    assert platform_dirs.appname == "snowflake"


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="XDG is Linux only")
def test_connections_file_falls_back_to_xdg_config_home(tmp_path, monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_HOME", str(tmp_path / "missing"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

    assert default_connections_file() == Path(
        tmp_path / "xdg" / "snowflake" / "connections.toml"
    )
