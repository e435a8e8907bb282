"""
Staged commit: copy into a staging folder, then merge into the target.

Phase 1 (CopyToTarget) copies every file of a folder into its staging
folder with an external copy command. The real target stays untouched.
Phase 2 (RenameTarget) moves staged files into the real target after
HashValidate confirmed them, and prunes the emptied staging folders.

Update modes:
    UPDATE_FOLDERS  create | update
    UPDATE_FILES    create | update | create_or_update
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Placeholder, file_placeholders, resolve_string
from ..execution import CommandNotFoundError, CommandRunner, check_executable
from ..folders import CONF_TARGET_FOLDER, CONF_TARGET_STAGE, FolderError, paths
from .base import (
    MEM_COPY_SKIPPED,
    MEM_TARGET_FOLDER_STAGES,
    MEM_TARGET_FOLDERS,
    MEM_VALIDATION_FAILED,
    Task,
    TaskKind,
)

logger = logging.getLogger(__name__)


CONF_UPDATE_FOLDERS = "UPDATE_FOLDERS"
CONF_UPDATE_FILES = "UPDATE_FILES"
CONF_COPY_CMD = "COPY_CMD"

OPT_CREATE = "create"
OPT_UPDATE = "update"
OPT_CREATE_OR_UPDATE = "create_or_update"

OPT_UPDATE_FOLDERS = (OPT_CREATE, OPT_UPDATE)
OPT_UPDATE_FILES = (OPT_CREATE, OPT_UPDATE, OPT_CREATE_OR_UPDATE)

DEFAULT_COPY_CMD = (
    'rsync --progress --times --copy-links --inplace '
    '--log-file="[@LOGFILE@]" "[@FILE_IN@]" "[@FILE_OUT@]"'
)

COPY_DEFAULTS = {
    CONF_UPDATE_FOLDERS: OPT_CREATE,
    CONF_UPDATE_FILES: OPT_CREATE,
    CONF_COPY_CMD: DEFAULT_COPY_CMD,
}

# Exit codes of rsync, for readable log messages
RSYNC_MESSAGES: Dict[int, str] = {
    0: "Success",
    1: "Syntax or usage error",
    2: "Protocol incompatibility",
    3: "Errors selecting input/output files, dirs",
    4: "Requested action not supported: an attempt was made to manipulate "
       "64-bit files on a platform that cannot support them; or an option "
       "was specified that is supported by the client and not by the server.",
    5: "Error starting client-server protocol",
    6: "Daemon unable to append to log-file",
    10: "Error in socket I/O",
    11: "Error in file I/O",
    12: "Error in rsync protocol data stream",
    13: "Errors with program diagnostics",
    14: "Error in IPC code",
    20: "Received SIGUSR1 or SIGINT",
    21: "Some error returned by waitpid()",
    22: "Error allocating core memory buffers",
    23: "Partial transfer due to error",
    24: "Partial transfer due to vanished source files",
    25: "The --max-delete limit stopped deletions",
    30: "Timeout in data send/receive",
    35: "Timeout waiting for daemon connection",
    127: "Command not found",
}


def copy_error_message(exit_code: int) -> str:
    return RSYNC_MESSAGES.get(exit_code, f"Unknown exit code {exit_code}")


class TaskCopy(Task):
    """Settings and filesystem helpers shared by both phases."""

    requires_target = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.update_folders = OPT_CREATE
        self.update_files = OPT_CREATE

    def _option(self, key: str) -> Optional[str]:
        value = self.config.get(key)
        if value is None or value == "":
            value = COPY_DEFAULTS.get(key)
        return value

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        if self.config.get(CONF_TARGET_FOLDER) and not self.config.get(CONF_TARGET_STAGE):
            logger.error(
                f"No '{CONF_TARGET_STAGE}' set for '{CONF_TARGET_FOLDER}'. Cannot continue."
            )
            self.set_config_error()
            return False

        self.update_folders = str(self._option(CONF_UPDATE_FOLDERS)).lower()
        logger.debug(f"Copy update mode (folders): {self.update_folders}")
        if self.update_folders not in OPT_UPDATE_FOLDERS:
            logger.error(f"Invalid value set for '{CONF_UPDATE_FOLDERS}': {self.update_folders}")
            self.set_config_error()
            return False

        self.update_files = str(self._option(CONF_UPDATE_FILES)).lower()
        logger.debug(f"Copy update mode (files): {self.update_files}")
        if self.update_files not in OPT_UPDATE_FILES:
            logger.error(f"Invalid value set for '{CONF_UPDATE_FILES}': {self.update_files}")
            self.set_config_error()
            return False

        return True

    def create_folder(self, folder: Path) -> bool:
        """Create ``folder`` (and missing parents). An existing folder is fine."""
        if folder.is_dir():
            return True
        logger.info(f"Creating folder '{folder}'...")
        try:
            folder.mkdir(parents=True)
        except OSError as e:
            logger.error(f"Failed to create folder '{folder}': {e}")
            return False
        return True

    def move(self, source: Path, target: Path, overwrite: bool = False) -> bool:
        """
        Rename ``source`` to ``target``.

        Raises:
            FileNotFoundError: If source does not exist
            FileExistsError: If target exists and overwrite is False
        """
        if not source.exists():
            raise FileNotFoundError(f"Source does not exist: '{source}'")

        if target.exists():
            if not overwrite:
                raise FileExistsError(f"Target already exists: '{target}'")
            try:
                target.unlink()
            except OSError as e:
                logger.error(f"Unable to overwrite '{target}': {e}")
                self.set_pbct()
                return False

        logger.info(f"Moving '{source}' to '{target}'...")
        try:
            os.rename(source, target)
        except OSError as e:
            logger.error(f"Failed to rename '{source}' to '{target}': {e}")
            return False
        return True

    def check_target_folder_condition(self, target_folder: Path) -> bool:
        """
        Check the target folder against UPDATE_FOLDERS.

        A mismatch is PBCT, so that one run reports every conflicting
        folder before the operator resets the item.
        """
        if target_folder.exists():
            logger.info(f"Target folder '{target_folder}' already exists.")
            if not target_folder.is_dir():
                logger.error(f"Target folder '{target_folder}' is a file, but must be a folder.")
                self.set_error()
                return False
            if not paths.is_writable(target_folder):
                logger.error(f"Target folder '{target_folder}' is not writable. Check access rights?")
                self.set_error()
                return False

        if self.update_folders == OPT_CREATE and target_folder.exists():
            logger.error(
                f"Folder '{target_folder}' already exists. This violates config "
                f"condition '{CONF_UPDATE_FOLDERS} = {self.update_folders}'."
            )
            self.set_pbct()
            return False

        if self.update_folders == OPT_UPDATE and not target_folder.exists():
            logger.error(
                f"Target folder '{target_folder}' does not exist, but has to. This violates "
                f"config condition '{CONF_UPDATE_FOLDERS} = {self.update_folders}'."
            )
            self.set_pbct()
            return False

        return True

    def check_target_file_condition(self, target_file: Path) -> bool:
        """Check one target file against UPDATE_FILES."""
        if target_file.exists():
            logger.info(f"Target file '{target_file}' already exists.")
            if target_file.is_dir():
                logger.error(f"Target '{target_file}' is a folder, but should be a file.")
                self.set_error()
                return False
            if not paths.is_writable(target_file):
                logger.error(f"Target '{target_file}' is not writable. Check access rights?")
                self.set_error()
                return False

        if self.update_files == OPT_CREATE and target_file.exists():
            logger.error(
                f"File '{target_file}' already exists. This violates config "
                f"condition '{CONF_UPDATE_FILES} = {self.update_files}'."
            )
            self.set_pbct()
            return False

        if self.update_files == OPT_UPDATE and not target_file.exists():
            logger.error(
                f"File '{target_file}' does NOT exist, but has to. This violates config "
                f"condition '{CONF_UPDATE_FILES} = {self.update_files}'."
            )
            self.set_pbct()
            return False

        return True


class CopyToTarget(TaskCopy):
    """Copy the files of one folder into its staging folder."""

    name = "CopyToTarget"
    label = "Copy to target"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.copy_cmd = DEFAULT_COPY_CMD
        self.logfile: Optional[Path] = None
        self.runner = CommandRunner()

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False
        self.copy_cmd = str(self._option(CONF_COPY_CMD))
        return True

    def init(self) -> bool:
        if not super().init():
            return False
        if not self.check_temp_folder():
            return False

        try:
            check_executable(self.copy_cmd)
        except CommandNotFoundError as e:
            logger.error(f"{self.name}: {e}")
            self.set_config_error()
            return False

        self.logfile = self.command_logfile()
        return True

    def run(self) -> bool:
        if not self.copy_folder(
            self.source_folder, Path(self.target_folder), Path(self.target_folder_stage)
        ):
            return False
        self.set_done()
        return True

    def finalize(self) -> bool:
        return self.remove_command_logfile(self.logfile)

    def copy_command(self, source_file: Path, target_file: Path) -> str:
        """Resolve COPY_CMD for one file. File placeholders win over the folder's table."""
        table = self.config.placeholders
        table.update(file_placeholders(str(source_file), str(target_file)))
        table[Placeholder.LOGFILE.value] = str(self.logfile)
        return resolve_string(self.copy_cmd, table)

    def copy_file(self, source_file: Path, target_file: Path) -> bool:
        command = self.copy_command(source_file, target_file)
        result = self.runner.execute(command)
        if not result.ok:
            logger.error(
                f"Copying '{source_file}' failed: {copy_error_message(result.exit_code)} "
                f"(exit code {result.exit_code}, command: {command})"
            )
            for line in result.output:
                logger.info(f"  > {line}")
            return False
        return True

    def copy_folder(self, source_folder: Path, target_folder: Path, stage: Path) -> bool:
        errors = 0
        entry_count = 0
        copy_count = 0

        if not self.check_target_folder_condition(target_folder):
            return False
        if not self.create_folder(stage):
            self.set_pbct()
            return False

        for source_file in paths.folder_files(source_folder):
            entry_count += 1
            target_file = paths.target_filename(source_file, target_folder)
            staged_file = paths.target_filename(source_file, stage)

            pattern = self.exclude(source_file)
            if pattern:
                logger.info(f"Excluded from copy by '{pattern}': {source_file.name}")
                continue

            if not self.check_target_file_condition(target_file):
                self.context.memory.remember(MEM_COPY_SKIPPED, str(source_file), append=True)
                errors += 1
                continue

            logger.info(f"Copying '{source_file}' to '{staged_file}'...")
            if not self.copy_file(source_file, staged_file):
                errors += 1
                continue
            copy_count += 1

        if errors:
            logger.error(f"{errors} of {entry_count} files had errors ({copy_count} copied).")
            self.set_pbct()
            paths.remove_empty_subfolders(stage)
            return False

        logger.info(f"{copy_count} of {entry_count} files copied to stage '{stage}'")
        return True


class RenameTarget(TaskCopy):
    """
    Merge all staging folders of the item into their real targets.

    Stages whose hash validation failed are left untouched for inspection.
    """

    name = "RenameTarget"
    label = "Rename target to final"
    kind = TaskKind.RECURSIVE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.target_folder_stages: Dict[str, str] = {}

    def run(self) -> bool:
        memory = self.context.memory
        failed = set((memory.recall(MEM_VALIDATION_FAILED, strict=False) or {}).values())

        for sub_dir, folder in self.subfolders.items():
            try:
                stage = Path(folder.target_folder(staging=True))
                target = Path(folder.target_folder())
            except FolderError as e:
                logger.error(f"{self.name}: '{sub_dir}': {e}")
                self.set_config_error()
                return False

            self.target_folder_stages[str(target)] = str(stage)
            memory.remember(MEM_TARGET_FOLDER_STAGES, dict(self.target_folder_stages))

            own_target = folder.own_absolute_target()
            if own_target is not None:
                memory.remember(MEM_TARGET_FOLDERS, own_target, append=True)

            if str(stage) in failed:
                logger.error(f"Hash validation failed for '{stage}'. Not merging it into '{target}'.")
                self.set_pbc()
                continue

            if not stage.exists():
                logger.warning(f"Temp folder does not exist anymore: '{stage}'")
                self.set_pbc()
                continue

            if not self.create_folder(target):
                self.set_pbct()
                return False

            if not self.merge_files(stage, target):
                self.set_pbct()
                return False

        self.set_done()
        return True

    def finalize(self) -> bool:
        failed = set((self.context.memory.recall(MEM_VALIDATION_FAILED, strict=False) or {}).values())
        logger.info(f"Cleaning up {len(self.target_folder_stages)} empty staging folder structures:")
        for stage in self.target_folder_stages.values():
            if stage in failed:
                continue
            logger.info(f"Removing empty stage folder '{stage}'...")
            if not paths.remove_empty_subfolders(stage):
                logger.warning(f"Staging folder '{stage}' was not empty. Not clean.")
        return True

    def merge_files(self, stage: Path, target: Path) -> bool:
        """Move the plain files of ``stage`` into ``target``."""
        overwrite = self.update_files in (OPT_UPDATE, OPT_CREATE_OR_UPDATE)
        errors = 0
        entries: List[Path] = paths.folder_files(stage)

        logger.info(f"Merging files from '{stage}' into '{target}'...")
        for staged_file in entries:
            target_file = paths.target_filename(staged_file, target)
            try:
                ok = self.move(staged_file, target_file, overwrite=overwrite)
            except FileExistsError as e:
                logger.error(str(e))
                ok = False
            if not ok:
                errors += 1

        if errors:
            logger.error(f"{errors} of {len(entries)} files had errors.")
            return False
        return True
