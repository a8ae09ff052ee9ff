from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_json, write_log
from kvstarter.adapters.filesystem import FilesystemInspector
from kvstarter.adapters.memory import InMemoryInspector
from kvstarter.errors import DecodeError
from kvstarter.migration import has_migrated
from kvstarter.models import Command, DataDirState


def _store_state(value: str) -> dict:
    return {"Root": {"Children": {"_etcd": {"Children": {"next-internal-version": {"Value": value}}}}}}


def test_snapshot_sentinel_short_circuits_log() -> None:
    inspector = InMemoryInspector(
        state=DataDirState.LEGACY,
        snapshot=_store_state("2"),
        commands=DecodeError("JSONL_INVALID", "never read"),
    )
    assert has_migrated(inspector, "/data") is True
    assert inspector.calls == ["snapshot"]


def test_snapshot_without_sentinel_falls_back_to_log() -> None:
    inspector = InMemoryInspector(
        state=DataDirState.LEGACY,
        snapshot=_store_state("1"),
        commands=[
            Command("etcd:set", "/foo", "bar"),
            Command("etcd:set", "/_etcd/next-internal-version", "2"),
        ],
    )
    assert has_migrated(inspector, "/data") is True
    assert inspector.calls == ["snapshot", "log"]


def test_only_set_commands_count() -> None:
    inspector = InMemoryInspector(
        commands=[Command("etcd:create", "/_etcd/next-internal-version", "2")],
    )
    assert has_migrated(inspector, "/data") is False


def test_log_decode_error_propagates() -> None:
    inspector = InMemoryInspector(commands=DecodeError("JSONL_INVALID", "bad line"))
    with pytest.raises(DecodeError):
        has_migrated(inspector, "/data")


def test_sentinel_in_command_log_on_disk(legacy_dir: Path) -> None:
    write_log(
        legacy_dir / "log",
        [
            {"index": 1, "term": 1, "commandName": "etcd:set", "command": {"key": "/a", "value": "1"}},
            {
                "index": 2,
                "term": 1,
                "commandName": "etcd:set",
                "command": {"key": "/_etcd/next-internal-version", "value": "2"},
            },
        ],
    )
    assert has_migrated(FilesystemInspector(), str(legacy_dir)) is True


def test_sentinel_in_snapshot_on_disk(legacy_dir: Path) -> None:
    write_json(legacy_dir / "snapshot" / "3_500.ss", {"lastIndex": 500, "lastTerm": 3, "state": _store_state("2")})
    assert has_migrated(FilesystemInspector(), str(legacy_dir)) is True


def test_plain_legacy_data_has_not_migrated(legacy_dir: Path) -> None:
    write_log(
        legacy_dir / "log",
        [{"index": 1, "term": 1, "commandName": "etcd:set", "command": {"key": "/a", "value": "2"}}],
    )
    assert has_migrated(FilesystemInspector(), str(legacy_dir)) is False
