"""
Pytest configuration for the cinbox test suite.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from cinbox.config import ConfigResolver  # noqa: E402


# Configure pytest
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "scenario: marks end-to-end item scenarios (copy, hash, merge)"
    )


# cp instead of rsync, so the suite runs on minimal systems
COPY_CMD = 'cp "[@FILE_IN@]" "[@FILE_OUT@]"'

CONFIG_TEMPLATE = """\
[__INBOX__]
INBOX_NAME = Test Inbox
DIR_TEMP = {temp}
COOLOFF_TIME = 0
PAUSE_TIME = 0
WAIT_FOR_ITEMS = 0
{inbox}

[__DEFAULT__]
HASH_TYPE = md5
COPY_CMD = {copy_cmd}
{default}

[.]
TARGET_FOLDER = {archive}/[@ITEM_ID@]
{root}

{sections}
"""


@dataclass
class InboxTree:
    """Inbox folder with processing folders, an archive and a temp base."""

    base: Path
    inbox: Path
    archive: Path
    temp: Path

    @property
    def todo(self) -> Path:
        return self.inbox / "todo"

    @property
    def in_progress(self) -> Path:
        return self.inbox / "in_progress"

    @property
    def done(self) -> Path:
        return self.inbox / "done"

    @property
    def error(self) -> Path:
        return self.inbox / "error"

    @property
    def logs(self) -> Path:
        return self.inbox / "log"

    @property
    def config_file(self) -> Path:
        return self.inbox / "cinbox.ini"

    def config_text(
        self,
        inbox: str = "",
        default: str = "",
        root: str = "",
        sections: str = "",
        copy_cmd: str = COPY_CMD,
    ) -> str:
        return CONFIG_TEMPLATE.format(
            temp=self.temp,
            archive=self.archive,
            copy_cmd=copy_cmd,
            inbox=inbox,
            default=default,
            root=root,
            sections=sections,
        )

    def write_config(self, **kwargs) -> Path:
        self.config_file.write_text(self.config_text(**kwargs), encoding="utf-8")
        return self.config_file

    def add_item(
        self,
        item_id: str,
        files: Optional[Dict[str, Union[str, bytes]]] = None,
        status_folder: Optional[Path] = None,
    ) -> Path:
        """Create an item folder. ``files`` maps relative paths to contents."""
        item = (status_folder or self.todo) / item_id
        item.mkdir(parents=True)
        for name, content in (files or {}).items():
            path = item / name
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return item


@pytest.fixture
def inbox_tree(tmp_path: Path) -> InboxTree:
    """Inbox with all processing folders, an empty archive and temp base."""
    tree = InboxTree(
        base=tmp_path,
        inbox=tmp_path / "inbox",
        archive=tmp_path / "archive",
        temp=tmp_path / "temp",
    )
    for folder in (tree.todo, tree.in_progress, tree.done, tree.error, tree.logs):
        folder.mkdir(parents=True)
    tree.archive.mkdir()
    tree.temp.mkdir()
    return tree


@pytest.fixture
def write_script(tmp_path: Path):
    """Factory: write an executable /bin/sh script and return its path."""
    scripts = tmp_path / "scripts"
    scripts.mkdir(exist_ok=True)

    def _write(name: str, body: str) -> Path:
        path = scripts / name
        path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        path.chmod(0o755)
        return path

    return _write


@pytest.fixture
def make_resolver():
    """Factory: ConfigResolver with ``text`` loaded and placeholders initialized."""

    def _make(text: str, **extra) -> ConfigResolver:
        config = ConfigResolver(text)
        config.init_placeholders(extra or None)
        return config

    return _make


@pytest.fixture
def restore_logging():
    """Undo logging.basicConfig(force=True) done by the CLI."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("cinbox.inbox").setLevel(logging.NOTSET)
