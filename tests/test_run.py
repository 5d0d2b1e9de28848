"""
Tests for hashring_watcher.run module
"""

import json
import time
from unittest.mock import patch

import pytest

from hashring_watcher import run as run_module
from hashring_watcher.config import WatcherConfig
from hashring_watcher.run import FileStatus, run_reconciliation


@pytest.fixture
def config():
    return WatcherConfig(file="unused.json", owner="", endpoint_timeout=0.5, interval=1.0)


class TestRunReconciliation:
    """Tests for run_reconciliation."""

    @pytest.mark.asyncio
    async def test_scenario_one_member_down(self, config, write_hashrings, member_transport):
        """Test the generated file drops the unreachable member."""
        source = write_hashrings([{"endpoints": ["a:10901", "b:10901", "c:10901"]}])
        transport = member_transport({"a": True, "b": False, "c": True})

        report = await run_reconciliation([str(source)], config, transport=transport)

        generated = source.with_name("hashrings_generated.json")
        assert generated.read_bytes() == b'[{"endpoints":["a:10901","c:10901"]}]'
        assert report.outcomes[0].status == FileStatus.WRITTEN
        assert report.outcomes[0].ready_endpoints == 2
        assert report.outcomes[0].total_endpoints == 3

    @pytest.mark.asyncio
    async def test_second_run_unchanged(self, config, write_hashrings, member_transport):
        """Test an unchanged readiness picture is not rewritten."""
        source = write_hashrings([{"endpoints": ["a:10901", "b:10901"]}])
        transport = member_transport({"a": True, "b": False})

        first = await run_reconciliation([str(source)], config, transport=transport)
        second = await run_reconciliation([str(source)], config, transport=transport)

        assert first.outcomes[0].status == FileStatus.WRITTEN
        assert second.outcomes[0].status == FileStatus.UNCHANGED
        assert first.outcomes[0].fingerprint == second.outcomes[0].fingerprint

    @pytest.mark.asyncio
    async def test_member_recovery_rewrites(self, config, write_hashrings, member_transport):
        """Test a member becoming ready triggers a new write."""
        source = write_hashrings([{"hashring": "default", "endpoints": ["b:10901", "a:10901"]}])
        members = {"a": True, "b": False}

        first = await run_reconciliation([str(source)], config, transport=member_transport(members))
        members["b"] = True
        second = await run_reconciliation([str(source)], config, transport=member_transport(members))

        generated = source.with_name("hashrings_generated.json")
        assert second.outcomes[0].status == FileStatus.WRITTEN
        assert second.outcomes[0].fingerprint != first.outcomes[0].fingerprint
        assert json.loads(generated.read_text()) == [
            {"hashring": "default", "endpoints": ["a:10901", "b:10901"]}
        ]

    @pytest.mark.asyncio
    async def test_failures_isolated_per_file(self, config, write_hashrings, member_transport, tmp_path):
        """Test bad files fail alone while good files are still written."""
        good = write_hashrings([{"endpoints": ["a:10901"]}], name="good.json")
        malformed = write_hashrings("{not json", name="malformed.json")
        invalid = write_hashrings([{"endpoints": ["no-port"]}], name="invalid.json")
        missing = tmp_path / "missing.json"
        transport = member_transport({"a": True})

        report = await run_reconciliation(
            [str(malformed), str(good), str(missing), str(invalid)], config, transport=transport
        )

        statuses = {o.source: o.status for o in report.outcomes}
        assert statuses[str(good)] == FileStatus.WRITTEN
        assert statuses[str(malformed)] == FileStatus.FAILED
        assert statuses[str(missing)] == FileStatus.FAILED
        assert statuses[str(invalid)] == FileStatus.FAILED
        assert len(report.failed) == 3
        assert (tmp_path / "good_generated.json").exists()
        assert not (tmp_path / "malformed_generated.json").exists()

    @pytest.mark.asyncio
    async def test_slow_write_does_not_starve_other_files(self, write_hashrings, member_transport):
        """Test a slow disk write in one file leaves another file's ready member in place."""
        config = WatcherConfig(file="unused.json", owner="", endpoint_timeout=0.3, interval=1.0)
        slow = write_hashrings([{"endpoints": []}], name="a_empty.json")
        live = write_hashrings([{"endpoints": ["b:10901"]}], name="b_live.json")
        transport = member_transport({"b": True}, delays={"b": 0.05})

        with patch("hashring_watcher.materializer.os.fsync", side_effect=lambda fd: time.sleep(0.5)):
            report = await run_reconciliation([str(slow), str(live)], config, transport=transport)

        assert [o.status for o in report.outcomes] == [FileStatus.WRITTEN, FileStatus.WRITTEN]
        assert live.with_name("b_live_generated.json").read_bytes() == b'[{"endpoints":["b:10901"]}]'

    @pytest.mark.asyncio
    async def test_unexpected_error_contained(self, config, write_hashrings, member_transport, caplog):
        """Test an unexpected exception in one pipeline fails only that file."""
        good = write_hashrings([{"endpoints": ["a:10901"]}], name="good.json")
        boom = write_hashrings([{"endpoints": ["a:10901"]}], name="boom.json")
        real_load = run_module.load_hashrings

        def load(path):
            if str(path).endswith("boom.json"):
                raise RuntimeError("unexpected")
            return real_load(path)

        with patch("hashring_watcher.run.load_hashrings", side_effect=load):
            report = await run_reconciliation(
                [str(boom), str(good)], config, transport=member_transport({"a": True})
            )

        assert report.outcomes[0].status == FileStatus.FAILED
        assert report.outcomes[0].error == "unexpected"
        assert report.outcomes[1].status == FileStatus.WRITTEN
        assert "Unexpected error processing hashring file" in caplog.text

    @pytest.mark.asyncio
    async def test_port_offset_and_scheme(self, write_hashrings, member_transport):
        """Test probing configuration reaches the prober."""
        config = WatcherConfig(
            file="unused.json",
            owner="",
            endpoint_scheme="https",
            endpoint_port_offset=10,
            endpoint_timeout=0.5,
            interval=1.0,
        )
        source = write_hashrings([{"endpoints": ["a:10901"]}])
        transport = member_transport({"a": True})

        await run_reconciliation([str(source)], config, transport=transport)

        assert str(transport.requests[0].url) == "https://a:10911/-/ready"

    @pytest.mark.asyncio
    async def test_report_to_dict(self, config, write_hashrings, member_transport):
        """Test the report summary counts."""
        source = write_hashrings([{"endpoints": ["a:10901"]}])

        report = await run_reconciliation([str(source)], config, transport=member_transport({}))
        data = report.to_dict()

        assert data["written"] == 1
        assert data["failed"] == 0
        assert data["files"][0]["status"] == "written"
        assert data["files"][0]["ready_endpoints"] == 0

    @pytest.mark.asyncio
    async def test_no_files(self, config):
        """Test an empty run completes with no outcomes."""
        report = await run_reconciliation([], config)

        assert report.outcomes == []
