"""Tests for RoonWorker (QThread worker for the async client)."""

from collections.abc import Generator

import pytest
from pytestqt.qtbot import QtBot

from roonmpris.api.protocol import MooError
from roonmpris.core.worker import RoonWorker
from roonmpris.models.core_info import CoreInfo
from roonmpris.models.zone import ZoneEvent

from conftest import MockRoonCore


@pytest.fixture
def running_worker(
    threaded_server: tuple[str, int], qtbot: QtBot
) -> Generator[RoonWorker, None, None]:
    """Return a worker paired with the threaded mock core."""
    host, port = threaded_server
    worker = RoonWorker(host, port, timeout=2.0)
    with qtbot.waitSignal(worker.core_paired, timeout=5000):
        worker.start()
    yield worker
    worker.stop()
    worker.wait(5000)


class TestRoonWorkerBasics:
    """Test basic RoonWorker functionality."""

    def test_initialization(self) -> None:
        """Test worker initialization."""
        worker = RoonWorker("192.168.1.5", 9100)

        assert worker.host == "192.168.1.5"
        assert worker.port == 9100
        assert worker.base_address == "192.168.1.5:9100"
        assert not worker.is_paired
        assert worker._should_run is True

    def test_default_port(self) -> None:
        """Test default port is 9100."""
        assert RoonWorker("192.168.1.5").port == 9100

    def test_stop_sets_flag(self) -> None:
        """Test that stop sets the should_run flag."""
        worker = RoonWorker("192.168.1.5")
        worker.stop()
        assert worker._should_run is False


class TestRoonWorkerNotConnected:
    """Test calls before pairing."""

    def test_control_raises(self) -> None:
        """Test control fails fast without a core."""
        with pytest.raises(ConnectionError):
            RoonWorker("192.168.1.5").control("zone-1", "next")

    def test_seek_raises(self) -> None:
        """Test seek fails fast without a core."""
        with pytest.raises(ConnectionError):
            RoonWorker("192.168.1.5").seek("zone-1", "relative", 5.0)

    def test_pause_all_raises(self) -> None:
        """Test pause_all fails fast without a core."""
        with pytest.raises(ConnectionError):
            RoonWorker("192.168.1.5").pause_all()


class TestRoonWorkerWithCore:
    """Test the worker against a mock core."""

    def test_pairs_and_reports_token(
        self, threaded_server: tuple[str, int], qtbot: QtBot
    ) -> None:
        """Test pairing emits the core and the new token."""
        host, port = threaded_server
        worker = RoonWorker(host, port, timeout=2.0)
        try:
            with (
                qtbot.waitSignal(worker.token_received, timeout=5000) as token,
                qtbot.waitSignal(worker.core_paired, timeout=5000) as paired,
            ):
                worker.start()
        finally:
            worker.stop()
            worker.wait(5000)

        assert token.args == ["core-1", "token-1"]
        core = paired.args[0]
        assert isinstance(core, CoreInfo)
        assert core.core_id == "core-1"

    def test_saved_token_not_reported(
        self, threaded_server: tuple[str, int], qtbot: QtBot
    ) -> None:
        """Test an unchanged token is not persisted again."""
        host, port = threaded_server
        worker = RoonWorker(host, port, tokens={"core-1": "token-1"}, timeout=2.0)
        tokens: list[tuple[str, str]] = []
        worker.token_received.connect(lambda core_id, token: tokens.append((core_id, token)))
        try:
            with qtbot.waitSignal(worker.core_paired, timeout=5000):
                worker.start()
        finally:
            worker.stop()
            worker.wait(5000)
        assert tokens == []

    def test_zones_received(self, threaded_server: tuple[str, int], qtbot: QtBot) -> None:
        """Test the initial zone list arrives with the base address."""
        host, port = threaded_server
        worker = RoonWorker(host, port, timeout=2.0)
        try:
            with qtbot.waitSignal(worker.zones_received, timeout=5000) as blocker:
                worker.start()
        finally:
            worker.stop()
            worker.wait(5000)

        event, base_address = blocker.args
        assert isinstance(event, ZoneEvent)
        assert [z.zone_id for z in event.added] == ["zone-1", "zone-2"]
        assert base_address == f"{host}:{port}"

    def test_control_completes(self, running_worker: RoonWorker, qtbot: QtBot) -> None:
        """Test a control call reports success with its token."""
        with qtbot.waitSignal(running_worker.request_finished, timeout=5000) as blocker:
            token = running_worker.control("zone-1", "next")
        assert blocker.args == [token, None]

    def test_control_failure_reported(
        self, running_worker: RoonWorker, roon_core: MockRoonCore, qtbot: QtBot
    ) -> None:
        """Test an upstream error is reported with the token."""
        roon_core.fail_transport = True
        with qtbot.waitSignal(running_worker.request_finished, timeout=5000) as blocker:
            token = running_worker.seek("zone-1", "absolute", 10.0)
        assert blocker.args[0] == token
        assert isinstance(blocker.args[1], MooError)

    def test_tokens_are_distinct(self, running_worker: RoonWorker) -> None:
        """Test each call gets its own token."""
        first = running_worker.control("zone-1", "next")
        second = running_worker.pause_all()
        assert first != second

    def test_stop_emits_core_lost(self, running_worker: RoonWorker, qtbot: QtBot) -> None:
        """Test stopping a paired worker reports the lost core."""
        with qtbot.waitSignal(running_worker.core_lost, timeout=5000):
            running_worker.stop()
