"""
Tests for the update ledger.
"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from artisync.exceptions import LedgerError
from artisync.sync.ledger import UpdateLedger

T1 = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
T2 = T1 + timedelta(minutes=5)


class TestLoad:
    def test_missing_file_is_empty(self, tmp_path):
        ledger = UpdateLedger(tmp_path / "ledger.json").load()
        assert len(ledger) == 0
        assert ledger.get("a.b.c") is None
        # Loading does not create the file
        assert not (tmp_path / "ledger.json").exists()

    def test_reads_go_style_timestamps(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({"acme.site.dist": "2024-05-01T12:30:00Z"}))
        ledger = UpdateLedger(path).load()
        assert ledger.get("acme.site.dist") == T1

    def test_empty_file_is_empty_ledger(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("")
        assert len(UpdateLedger(path).load()) == 0

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{not json")
        with pytest.raises(LedgerError, match="not valid JSON"):
            UpdateLedger(path).load()

    def test_non_object_raises(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("[]")
        with pytest.raises(LedgerError, match="JSON object"):
            UpdateLedger(path).load()

    def test_bad_timestamp_raises(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({"k": "yesterday"}))
        with pytest.raises(LedgerError, match="invalid timestamp"):
            UpdateLedger(path).load()

    def test_get_loads_lazily(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({"k": T1.isoformat()}))
        assert UpdateLedger(path).get("k") == T1


class TestSet:
    def test_persists_on_every_set(self, tmp_path):
        path = tmp_path / "ledger.json"
        ledger = UpdateLedger(path).load()
        ledger.set("a.b.c", T1)
        assert json.loads(path.read_text()) == {"a.b.c": T1.isoformat()}

    def test_survives_restart(self, tmp_path):
        path = tmp_path / "ledger.json"
        first = UpdateLedger(path).load()
        first.set("a.b.c", T1)
        first.set("x.y.z", T2)

        second = UpdateLedger(path).load()
        assert second.get("a.b.c") == T1
        assert second.get("x.y.z") == T2
        assert sorted(second.keys()) == ["a.b.c", "x.y.z"]

    def test_update_keeps_unrelated_keys(self, tmp_path):
        path = tmp_path / "ledger.json"
        ledger = UpdateLedger(path).load()
        ledger.set("a.b.c", T1)
        ledger.set("x.y.z", T1)
        ledger.set("a.b.c", T2)
        assert UpdateLedger(path).load().get("x.y.z") == T1

    def test_is_current(self, tmp_path):
        ledger = UpdateLedger(tmp_path / "ledger.json").load()
        assert ledger.is_current("k", T1) is False
        ledger.set("k", T1)
        assert ledger.is_current("k", T1) is True
        assert ledger.is_current("k", T2) is False
        assert "k" in ledger

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "state" / "ledger.json"
        UpdateLedger(path).load().set("k", T1)
        assert path.exists()

    def test_failed_write_keeps_previous_file(self, tmp_path, monkeypatch):
        path = tmp_path / "ledger.json"
        ledger = UpdateLedger(path).load()
        ledger.set("k", T1)
        before = path.read_text()

        def crash(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("artisync.utils.atomic.os.replace", crash)
        with pytest.raises(LedgerError, match="disk full"):
            ledger.set("k", T2)
        assert path.read_text() == before
        assert os.listdir(tmp_path) == ["ledger.json"]
