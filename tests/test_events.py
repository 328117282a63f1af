"""Tests for the change protocol message format."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from jsonkit.watching import WatchEvent, WatchEventKind
from jsonkit.watching.events import format_timestamp, parse_timestamp

STAMP = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)


class TestWatchEventKind:
    """Test kind properties."""

    def test_wire_values(self) -> None:
        assert [k.value for k in WatchEventKind] == ["add", "addDir", "change", "unlink", "unlinkDir"]

    def test_directory_kinds(self) -> None:
        assert WatchEventKind.DIR_ADDED.is_directory
        assert WatchEventKind.DIR_REMOVED.is_directory
        assert not WatchEventKind.FILE_CHANGED.is_directory

    def test_ext_data_kinds(self) -> None:
        carrying = {k for k in WatchEventKind if k.carries_ext_data}
        assert carrying == {WatchEventKind.FILE_ADDED, WatchEventKind.FILE_CHANGED}


class TestTimestamps:
    def test_format_has_millis_and_z(self) -> None:
        assert format_timestamp(STAMP) == "2024-05-01T12:30:45.123Z"

    def test_parse_accepts_z(self) -> None:
        parsed = parse_timestamp("2024-05-01T12:30:45.123Z")
        assert parsed == datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)


class TestToMessage:
    """Test serialization."""

    def test_file_added(self) -> None:
        event = WatchEvent(
            kind=WatchEventKind.FILE_ADDED,
            path="/data/sub/new.json",
            ext_data={"tags": ["a"]},
            timestamp=STAMP,
        )
        assert event.to_message() == {
            "type": "add",
            "path": "/data/sub/new.json",
            "isDirectory": False,
            "time": "2024-05-01T12:30:45.123Z",
            "basename": "new.json",
            "extData": {"tags": ["a"]},
        }

    def test_file_added_without_rules_has_no_ext_data(self) -> None:
        message = WatchEvent(kind=WatchEventKind.FILE_ADDED, path="/data/x.json").to_message()
        assert "extData" not in message

    def test_file_changed_has_no_basename(self) -> None:
        message = WatchEvent(
            kind=WatchEventKind.FILE_CHANGED, path="/data/x.json", ext_data={}
        ).to_message()
        assert "basename" not in message
        assert message["extData"] == {}

    def test_directory_removed(self) -> None:
        message = WatchEvent(kind=WatchEventKind.DIR_REMOVED, path="/data/sub").to_message()
        assert message["type"] == "unlinkDir"
        assert message["isDirectory"] is True
        assert "extData" not in message

    def test_removal_drops_stray_ext_data(self) -> None:
        message = WatchEvent(
            kind=WatchEventKind.FILE_REMOVED, path="/data/x.json", ext_data={"a": []}
        ).to_message()
        assert "extData" not in message


class TestFromMessage:
    """Test parsing."""

    def test_parses_fields(self) -> None:
        event = WatchEvent.from_message(
            {
                "type": "change",
                "path": "/data/x.json",
                "isDirectory": False,
                "time": "2024-05-01T12:30:45.123Z",
                "extData": {"tags": ["q"]},
            }
        )
        assert event.kind is WatchEventKind.FILE_CHANGED
        assert event.path == "/data/x.json"
        assert event.ext_data == {"tags": ["q"]}
        assert event.timestamp.year == 2024

    def test_missing_time_defaults_to_now(self) -> None:
        event = WatchEvent.from_message({"type": "unlink", "path": "/data/x.json"})
        assert event.timestamp.tzinfo is not None

    def test_unknown_type(self) -> None:
        with pytest.raises(ValueError):
            WatchEvent.from_message({"type": "rename", "path": "/data/x.json"})

    def test_missing_path(self) -> None:
        with pytest.raises(KeyError):
            WatchEvent.from_message({"type": "add"})

    def test_empty_path(self) -> None:
        with pytest.raises(ValueError):
            WatchEvent.from_message({"type": "add", "path": ""})
