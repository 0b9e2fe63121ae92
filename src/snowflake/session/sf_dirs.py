#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import os
from typing import Literal

from platformdirs import PlatformDirs, PlatformDirsABC

from .constants import ENV_VAR_SNOWFLAKE_HOME


def _resolve_platform_dirs() -> PlatformDirsABC:
    """Decide on what PlatformDirs class to use.

    If $SNOWFLAKE_HOME (or ~/.snowflake when unset) exists, every platform
    directory is that folder. Otherwise the platformdirs defaults apply, for
    example $XDG_CONFIG_HOME/snowflake on Linux.
    """
    platformdir_kwargs = {
        "appname": "snowflake",
        "appauthor": False,
    }
    snowflake_home = os.path.expanduser(
        os.environ.get(ENV_VAR_SNOWFLAKE_HOME, "~/.snowflake/"),
    )
    if os.path.exists(snowflake_home):
        return SFPlatformDirs(
            snowflake_home,
            **platformdir_kwargs,
        )
    return PlatformDirs(**platformdir_kwargs)


class SFPlatformDirs(PlatformDirsABC):
    """Single folder platformdirs.

    Everything is placed into one folder, for users who prefer portability
    over the platform conventions.
    """

    def __init__(
        self,
        single_dir: str,
        appname: str | None = None,
        appauthor: str | None | Literal[False] = None,
        version: str | None = None,
        roaming: bool = False,
        multipath: bool = False,
        opinion: bool = True,
        ensure_exists: bool = False,
    ) -> None:
        super().__init__(
            appname=appname,
            appauthor=appauthor,
            version=version,
            roaming=roaming,
            multipath=multipath,
            opinion=opinion,
            ensure_exists=ensure_exists,
        )
        self.single_dir = single_dir

    @property
    def user_data_dir(self) -> str:
        """data directory tied to the user"""
        return self.single_dir

    @property
    def site_data_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_config_dir(self) -> str:
        """config directory tied to the user, where connections.toml lives"""
        return self.user_data_dir

    @property
    def site_config_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_cache_dir(self) -> str:
        return self.user_data_dir

    @property
    def site_cache_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_state_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_log_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_documents_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_downloads_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_pictures_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_videos_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_music_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_desktop_dir(self) -> str:
        return self.user_data_dir

    @property
    def user_runtime_dir(self) -> str:
        return self.user_data_dir

    @property
    def site_runtime_dir(self) -> str:
        return self.user_data_dir
