"""
Maintenance: pruning dangling set memberships and purging expired records.
"""

import json
from datetime import datetime
from unittest.mock import patch

import pytest

from itemstore.core.config import EmbeddingConfig
from itemstore.core.dao import ItemStore
from itemstore.core.maintenance import MaintenanceReport, purge_expired_records, sweep_dangling_memberships
from itemstore.core.schema import ALL_ITEMS_SET, category_set_key
from itemstore.core.store import InMemoryKeyValueStore
from itemstore.vector.embeddings import EmbeddingProvider
from scripts import maintenance as maintenance_cli


class FakeClock:
    def __init__(self):
        self.now = 1_700_000_000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def items(store):
    return ItemStore(store, EmbeddingProvider(EmbeddingConfig()))


class TestMaintenanceReport:

    def test_to_dict(self):
        started = datetime(2024, 1, 1, 12, 0, 0)
        report = MaintenanceReport(operation="sweep_memberships", started_at=started, issues_found=2)
        data = report.to_dict()

        assert data["operation"] == "sweep_memberships"
        assert data["started_at"] == started.isoformat()
        assert data["issues_found"] == 2
        assert "completed_at" not in data

        report.completed_at = started
        assert report.to_dict()["completed_at"] == started.isoformat()

    def test_summary(self):
        report = MaintenanceReport(operation="sweep_memberships", started_at=datetime(2024, 1, 1),
                                   issues_found=3, issues_resolved=2, errors=["items:all/item:1: locked"],
                                   metadata={"sets_checked": 2, "members_checked": 7, "dry_run": False})

        assert report.summary().splitlines() == [
            "sweep_memberships: failed, found 3, resolved 2",
            "  sets_checked: 2",
            "  members_checked: 7",
            "  dry_run: False",
            "  error: items:all/item:1: locked",
        ]


class TestSweep:

    def test_removes_memberships_of_expired_items(self, items, store, clock):
        expired = items.add_item("old", "content", category="Databases", ttl_seconds=10)
        kept = items.add_item("new", "content", category="Databases", ttl_seconds=1000)
        clock.advance(11)

        report = sweep_dangling_memberships(store)

        assert report.issues_found == 2
        assert report.issues_resolved == 2
        assert report.errors == []
        assert store.set_members(ALL_ITEMS_SET) == [kept.id]
        assert store.set_members(category_set_key("Databases")) == [kept.id]
        assert expired.id not in store.set_members(ALL_ITEMS_SET)

    def test_dry_run_changes_nothing(self, items, store, clock):
        expired = items.add_item("old", "content", ttl_seconds=10)
        clock.advance(11)

        report = sweep_dangling_memberships(store, dry_run=True)

        assert report.issues_found == 2
        assert report.issues_resolved == 0
        assert report.metadata["dry_run"] is True
        assert store.set_members(ALL_ITEMS_SET) == [expired.id]

    def test_clean_store(self, items, store):
        items.add_item("t", "c")
        report = sweep_dangling_memberships(store)
        assert report.issues_found == 0
        assert report.metadata["members_checked"] == 2


class TestPurge:

    def test_purge_expired(self, items, store, clock):
        items.add_item("old", "content", ttl_seconds=10)
        items.add_item("new", "content", ttl_seconds=1000)
        clock.advance(11)

        report = purge_expired_records(store)

        assert report.issues_resolved == 1
        assert len(store.scan_prefix("item:")) == 1


class TestMaintenanceCli:

    def test_requires_an_operation(self):
        with pytest.raises(SystemExit):
            maintenance_cli.main([])

    def test_sweep_json_output(self, items, store, clock, capsys):
        items.add_item("old", "content", ttl_seconds=10)
        clock.advance(11)

        with patch.object(maintenance_cli, "get_store", return_value=store), \
             patch.object(maintenance_cli, "validate_config", return_value=[]):
            exit_code = maintenance_cli.main(["--sweep", "--json"])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["reports"][0]["operation"] == "sweep_memberships"
        assert output["reports"][0]["issues_resolved"] == 2

    def test_config_issues_abort(self, capsys):
        with patch.object(maintenance_cli, "validate_config", return_value=["Invalid STORE_BACKEND: redis"]):
            assert maintenance_cli.main(["--purge-expired"]) == 2
        assert "Invalid STORE_BACKEND" in capsys.readouterr().err

    def test_text_output(self, items, store, clock, capsys):
        items.add_item("old", "content", ttl_seconds=10)
        clock.advance(11)

        with patch.object(maintenance_cli, "get_store", return_value=store), \
             patch.object(maintenance_cli, "validate_config", return_value=[]):
            assert maintenance_cli.main(["--sweep"]) == 0

        out = capsys.readouterr().out
        assert "sweep_memberships: ok, found 2, resolved 2" in out
        assert "members_checked: 2" in out
