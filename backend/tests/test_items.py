"""
Tests for items: settings, memory, state machine, logfiles, tokens.

These tests verify:
1. Item settings load over defaults and reject malformed values
2. Item IDs, bucket scripts and task lists are validated at init
3. The memory store keeps insertion order and supports unique recall
4. Only the documented status transitions are allowed
5. Token files carry the remembered target folders
"""

import json
import logging
import os
import time
from pathlib import Path

import pytest

from cinbox.config import Placeholder, SettingsError
from cinbox.folders import FolderDepthError
from cinbox.items import (
    BucketScriptError,
    InvalidItemIdError,
    InvalidStatusTransitionError,
    Item,
    ItemLog,
    ItemMemory,
    ItemStatus,
    LogStyleError,
    MemoryKeyError,
    ProcessingError,
    can_transition,
    log_formatter,
    validate_transition,
)
from cinbox.tasks import DEFAULT_TASKLIST, MEM_TARGET_FOLDERS, UnknownTaskError


ITEM_CONFIG = """\
[__INBOX__]
INBOX_NAME = Items
{inbox}

[__DEFAULT__]
HASH_TYPE = md5
"""


@pytest.fixture
def item_factory(tmp_path: Path, make_resolver):
    """Factory: Item in tmp/todo with the given __INBOX__ lines and files."""
    todo = tmp_path / "todo"
    todo.mkdir()
    temp = tmp_path / "temp"
    temp.mkdir()

    def _make(item_id: str = "ITEM001", inbox: str = "", files=None) -> Item:
        path = todo / item_id
        path.mkdir()
        for name, content in (files or {}).items():
            (path / name).parent.mkdir(parents=True, exist_ok=True)
            (path / name).write_text(content)
        config = make_resolver(ITEM_CONFIG.format(inbox=inbox))
        return Item(path, config, temp)

    return _make


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------

class TestItemSettings:
    """Tests for Item.init_item_settings()."""

    def test_defaults(self, item_factory):
        """Unconfigured keys keep their defaults."""
        item = item_factory()

        settings = item.init_item_settings()

        assert settings.cooloff_time == 30
        assert settings.cooloff_filters == ("atime",)
        assert settings.max_folder_depth == 99
        assert list(settings.tasklist) == DEFAULT_TASKLIST
        assert settings.item_id_valid == ()

    def test_configured_values(self, item_factory):
        """Values from __INBOX__ override the defaults."""
        item = item_factory(inbox=(
            "COOLOFF_TIME = 2\n"
            "TASKLIST[] = FilesValid\n"
            "TASKLIST[] = HashGenerate\n"
            "TOKEN_DONE = [@ITEM_ID_LC@].done\n"
        ))

        settings = item.init_item_settings()

        assert settings.cooloff_time == 2
        assert settings.tasklist == ("FilesValid", "HashGenerate")
        assert settings.token_name(ItemStatus.DONE) == "item001.done"
        assert settings.token_name(ItemStatus.ERROR) is None

    def test_item_placeholders(self, item_factory):
        """ITEM_ID and its case variants are available to config resolution."""
        item = item_factory("Item-7")

        item.init_item_settings()

        assert item.config.placeholders[Placeholder.ITEM_ID.value] == "Item-7"
        assert item.config.placeholders[Placeholder.ITEM_ID_UC.value] == "ITEM-7"
        assert item.config.placeholders[Placeholder.ITEM_ID_LC.value] == "item-7"
        assert item.temp_folder.name == "item-7"

    def test_scalar_list_option_is_error(self, item_factory):
        """A list option given as a scalar is rejected."""
        item = item_factory(inbox="ITEM_ID_VALID = ^ITEM\n")

        with pytest.raises(SettingsError):
            item.init_item_settings()

    def test_item_config_is_a_copy(self, tmp_path: Path, make_resolver):
        """Item placeholders do not leak into the inbox resolver."""
        (tmp_path / "ITEM001").mkdir()
        inbox_config = make_resolver(ITEM_CONFIG.format(inbox=""))
        item = Item(tmp_path / "ITEM001", inbox_config, tmp_path)

        item.init_item_settings()

        assert Placeholder.ITEM_ID.value not in inbox_config.placeholders
        assert inbox_config.get("TASKLIST") is None


# -----------------------------------------------------------------------------
# Initialization
# -----------------------------------------------------------------------------

class TestItemInit:
    """Tests for Item.init_item()."""

    def test_valid_item_id(self, item_factory):
        """An ID matching one of the patterns is accepted."""
        item = item_factory("ITEM001", inbox="ITEM_ID_VALID[] = ^FOO\nITEM_ID_VALID[] = ^ITEM[0-9]+$\n")

        context = item.init_item()

        assert context.item_id == "ITEM001"
        assert item.initialized is True

    def test_invalid_item_id(self, item_factory):
        """An ID matching no pattern fails init."""
        item = item_factory("bad id", inbox="ITEM_ID_VALID[] = ^ITEM[0-9]+$\n")

        with pytest.raises(InvalidItemIdError):
            item.init_item()

    def test_bucket_script(self, item_factory, write_script):
        """The first output line of the bucket script becomes [@BUCKET@]."""
        script = write_script("bucket.sh", 'echo "bucket-$1"\necho "ignored"')
        item = item_factory(inbox=f"BUCKET_SCRIPT = {script}\n")

        item.init_item()

        assert item.bucket == "bucket-ITEM001"
        assert item.config.placeholders[Placeholder.BUCKET.value] == "bucket-ITEM001"

    def test_bucket_script_failure(self, item_factory, write_script):
        """A non-zero exit of the bucket script fails init."""
        script = write_script("bucket.sh", "exit 3")
        item = item_factory(inbox=f"BUCKET_SCRIPT = {script}\n")

        with pytest.raises(BucketScriptError):
            item.init_item()

    def test_bucket_script_without_output(self, item_factory, write_script):
        """An empty bucket is an error."""
        script = write_script("bucket.sh", "true")
        item = item_factory(inbox=f"BUCKET_SCRIPT = {script}\n")

        with pytest.raises(BucketScriptError, match="no bucket"):
            item.init_item()

    def test_unknown_task_in_tasklist(self, item_factory):
        """Task names must be known to the registry."""
        item = item_factory(inbox="TASKLIST[] = FilesValid\nTASKLIST[] = Transcode\n")

        with pytest.raises(UnknownTaskError, match="Transcode"):
            item.init_item()

    def test_folder_depth_limit(self, item_factory):
        """An item tree deeper than MAX_FOLDER_DEPTH fails init."""
        item = item_factory(inbox="MAX_FOLDER_DEPTH = 1\n", files={"a/b/file.txt": "x"})

        with pytest.raises(FolderDepthError):
            item.init_item()

    def test_subfolder_map(self, item_factory):
        """Folders are keyed by sub_dir, root first, depth-first."""
        item = item_factory(files={"b/file.txt": "x", "a/c/file.txt": "y"})

        item.init_item()

        assert list(item.subfolders()) == [".", "a", "a/c", "b"]

    def test_refresh_picks_up_new_folders(self, item_factory):
        """A changed tree is rebuilt before the next task."""
        item = item_factory(files={"a/file.txt": "x"})
        item.init_item()

        (item.path / "z").mkdir()

        assert list(item.refresh_subfolders()) == [".", "a", "z"]

    def test_process_requires_init(self, item_factory):
        """An item that was not initialized cannot be processed."""
        item = item_factory()

        with pytest.raises(ProcessingError):
            item.process()


# -----------------------------------------------------------------------------
# Cooloff
# -----------------------------------------------------------------------------

class TestCooloff:
    """Tests for Item.last_changed() and can_start()."""

    def test_zero_cooloff_starts_and_writes_changelog(self, item_factory):
        """A cooloff of 0 admits at once but still records the snapshot."""
        item = item_factory(inbox="COOLOFF_TIME = 0\n", files={"file.wav": "x"})

        assert item.can_start() is True
        assert item.changelog_file.is_file()
        assert "file.wav" in item.changelog_file.read_text()

    def test_first_scan_counts_as_change(self, item_factory):
        """Without a snapshot the item counts as changed just now."""
        item = item_factory(inbox="COOLOFF_TIME = 1\n", files={"file.wav": "x"})

        assert item.can_start() is False

    def test_unchanged_item_ages(self, item_factory):
        """An unchanged item reports the age of its snapshot."""
        item = item_factory(files={"file.wav": "x"})
        item.last_changed(["atime"])
        old = time.time() - 600
        os.utime(item.changelog_file, (old, old))

        assert item.last_changed(["atime"]) >= 590

    def test_change_rewrites_changelog(self, item_factory):
        """Any change inside the item resets the age."""
        item = item_factory(files={"file.wav": "x"})
        item.last_changed(["atime"])
        first = item.changelog_file.read_text()
        old = time.time() - 600
        os.utime(item.changelog_file, (old, old))

        (item.path / "file.wav").write_text("changed content")

        assert item.last_changed(["atime"]) == 0.0
        assert item.changelog_file.read_text() != first


# -----------------------------------------------------------------------------
# Memory
# -----------------------------------------------------------------------------

class TestItemMemory:
    """Tests for ItemMemory."""

    def test_replace_and_append(self):
        """remember() replaces unless append is set."""
        memory = ItemMemory("ITEM001")
        memory.remember("key", "a")
        memory.remember("key", "b")
        memory.remember("key", "c", append=True)

        assert list(memory.recall("key").values()) == ["b", "c"]

    def test_sequence_numbers_are_monotonic(self):
        """Entries are keyed by increasing sequence numbers."""
        memory = ItemMemory()
        memory.remember("key", "a", append=True)
        memory.remember("other", "x")
        memory.remember("key", "b", append=True)

        keys = list(memory.recall("key"))

        assert keys == sorted(keys)
        assert len(set(keys)) == 2

    def test_unique_recall(self):
        """unique=True drops repeated values, keeping the first."""
        memory = ItemMemory()
        for value in ("/a", "/b", "/a"):
            memory.remember("targets", value, append=True)

        assert list(memory.recall("targets", unique=True).values()) == ["/a", "/b"]

    def test_strict_recall_of_unknown_key(self):
        """Strict recall of an unknown key fails; non-strict returns None."""
        memory = ItemMemory()

        with pytest.raises(MemoryKeyError):
            memory.recall("missing")
        assert memory.recall("missing", strict=False) is None
        assert memory.recall_nice("missing") == []

    def test_recall_nice(self):
        """Nice entries carry timestamp, unixTime and value."""
        memory = ItemMemory()
        memory.remember("targets", "/archive/ITEM001")

        entry = memory.recall_nice("targets")[0]

        assert set(entry) == {"timestamp", "unixTime", "value"}
        assert entry["value"] == "/archive/ITEM001"

    def test_forget(self):
        """Forgetting removes a key; unknown keys are fine, empty keys are not."""
        memory = ItemMemory()
        memory.remember("key", 1)

        memory.forget("key")
        memory.forget("key")

        assert memory.keys() == []
        with pytest.raises(MemoryKeyError):
            memory.forget("")
        with pytest.raises(MemoryKeyError):
            memory.remember("", 1)


# -----------------------------------------------------------------------------
# State machine
# -----------------------------------------------------------------------------

class TestStatusTransitions:
    """Tests for the item status table."""

    def test_allowed_transitions(self):
        """The documented transitions are allowed."""
        assert can_transition(ItemStatus.TODO, ItemStatus.IN_PROGRESS)
        assert can_transition(ItemStatus.TODO, ItemStatus.ERROR)
        assert can_transition(ItemStatus.IN_PROGRESS, ItemStatus.DONE)
        assert can_transition(ItemStatus.IN_PROGRESS, ItemStatus.ERROR)
        assert can_transition(ItemStatus.IN_PROGRESS, ItemStatus.TODO)

    def test_terminal_statuses(self):
        """DONE and ERROR have no outgoing transitions."""
        for target in ItemStatus:
            assert not can_transition(ItemStatus.DONE, target)
            assert not can_transition(ItemStatus.ERROR, target)

    def test_illegal_transition_raises(self):
        """An illegal switch names both statuses."""
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            validate_transition("ITEM001", ItemStatus.TODO, ItemStatus.DONE)

        assert exc_info.value.current_status == "todo"
        assert exc_info.value.target_status == "done"


# -----------------------------------------------------------------------------
# Status folders and tokens
# -----------------------------------------------------------------------------

class TestItemStatusFolder:
    """Tests for moving items and writing tokens."""

    def test_move_to(self, item_factory, tmp_path: Path):
        """move_to() renames the item folder and sets the status."""
        item = item_factory(files={"file.wav": "x"})
        in_progress = tmp_path / "in_progress"
        in_progress.mkdir()

        item.move_to(ItemStatus.IN_PROGRESS, in_progress)

        assert item.path == in_progress / "ITEM001"
        assert (item.path / "file.wav").is_file()
        assert item.status == ItemStatus.IN_PROGRESS

    def test_write_token(self, item_factory, tmp_path: Path):
        """The token lists the remembered target folders."""
        item = item_factory(inbox="TOKEN_DONE = [@ITEM_ID@].done\n")
        item.init_item_settings()
        item.memory.remember(MEM_TARGET_FOLDERS, "/archive/ITEM001", append=True)
        item.memory.remember(MEM_TARGET_FOLDERS, "/archive/ITEM001", append=True)

        token = item.write_token(ItemStatus.DONE, tmp_path)

        assert token == tmp_path / "ITEM001.done"
        payload = json.loads(token.read_text())
        assert payload["itemId"] == "ITEM001"
        assert [e["value"] for e in payload["targetFolders"]] == ["/archive/ITEM001"]
        assert isinstance(payload["targetFolders"][0]["unixTime"], int)

    def test_no_token_configured(self, item_factory, tmp_path: Path):
        """Without a token name nothing is written."""
        item = item_factory()
        item.init_item_settings()

        assert item.write_token(ItemStatus.DONE, tmp_path) is None

    def test_absolute_token_path(self, item_factory, tmp_path: Path):
        """An absolute token name is used as-is."""
        target = tmp_path / "tokens" / "failed.json"
        item = item_factory(inbox=f"TOKEN_ERROR = {target}\n")
        item.init_item_settings()

        assert item.token_path(ItemStatus.ERROR, tmp_path / "error") == target

    def test_update_timestamp(self, item_factory):
        """The item folder's mtime is refreshed."""
        item = item_factory()
        old = time.time() - 3600
        os.utime(item.path, (old, old))

        item.update_timestamp()

        assert item.path.stat().st_mtime > old + 1800


# -----------------------------------------------------------------------------
# Item logfile
# -----------------------------------------------------------------------------

class TestItemLog:
    """Tests for the per-item logfile."""

    def test_attach_and_detach(self, tmp_path: Path):
        """While attached, cinbox log records go to <itemId>.log."""
        log = ItemLog("ITEM001", tmp_path)
        path = log.attach()
        try:
            logging.getLogger("cinbox.tests").warning("copy finished")
        finally:
            log.detach()
        logging.getLogger("cinbox.tests").warning("after detach")

        text = path.read_text()
        assert path == tmp_path / "ITEM001.log"
        assert "copy finished" in text
        assert "after detach" not in text

    def test_move_keeps_logging(self, tmp_path: Path):
        """A moved logfile keeps receiving records."""
        first = tmp_path / "todo"
        second = tmp_path / "done"
        second.mkdir()
        log = ItemLog("ITEM001", first)
        log.attach()
        try:
            logging.getLogger("cinbox.tests").warning("before move")
            log.move(second)
            logging.getLogger("cinbox.tests").warning("after move")
        finally:
            log.detach()

        text = (second / "ITEM001.log").read_text()
        assert not (first / "ITEM001.log").exists()
        assert "before move" in text
        assert "after move" in text

    def test_filecv_style_includes_item_id(self, tmp_path: Path):
        """The filecv style tags each line with the item ID."""
        log = ItemLog("ITEM001", tmp_path, style="filecv")
        log.attach()
        try:
            logging.getLogger("cinbox.tests").warning("tagged")
        finally:
            log.detach()

        assert "[ITEM001]" in log.path.read_text()

    def test_unknown_style(self):
        """Unknown styles are rejected."""
        with pytest.raises(LogStyleError):
            log_formatter("fancy")
