#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import logging

import pytest

from snowflake.session.heartbeat import HeartbeatBackground
from snowflake.session.session import Session
from snowflake.session.transport import set_socks_proxy_disabled

from .mock_utils import MINIMAL_PROPERTIES, FakeLoginClient, FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def login_client() -> FakeLoginClient:
    return FakeLoginClient()


@pytest.fixture
def heartbeat_background():
    """A private scheduler without a thread, heartbeats run through run_pending."""
    background = HeartbeatBackground(name="TestHeartbeatBackground", autostart=False)
    yield background
    background.shutdown()


@pytest.fixture
def new_session(transport, login_client, heartbeat_background):
    """Factory for sessions wired to the fakes, with the minimal properties set."""

    def create_session(**properties) -> Session:
        session = Session(
            login_client=login_client,
            transport=transport,
            heartbeat_background=heartbeat_background,
        )
        for name, value in {**MINIMAL_PROPERTIES, **properties}.items():
            if value is not None:
                session.set_property(name, value)
        return session

    return create_session


@pytest.fixture
def opened_session(new_session):
    session = new_session()
    session.open()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def reset_process_wide_state():
    package_logger = logging.getLogger("snowflake.session")
    level = package_logger.level
    yield
    package_logger.setLevel(level)
    set_socks_proxy_disabled(False)
