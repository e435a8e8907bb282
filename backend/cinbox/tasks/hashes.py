"""
Hash tasks: generate, search, validate and output content digests.

Digests live in the item's hash cache (see hashing/cache.py). Every hash
task of an item uses the same HASH_TYPE, so later tasks find what
HashGenerate stored.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..folders import paths
from ..hashing import (
    HashCache,
    HashCacheError,
    HashError,
    HashFileFormat,
    HashOutputMode,
    UnsupportedHashTypeError,
    compare_hashes,
    compute_file_hash,
    find_duplicates,
    format_hash_line,
    search_hash,
    validate_hash_type,
)
from ..folders import MaskError
from .base import MEM_COPY_SKIPPED, MEM_VALIDATION_FAILED, Task

logger = logging.getLogger(__name__)


CONF_HASH_TYPE = "HASH_TYPE"
CONF_HASH_SEARCH = "HASH_SEARCH"
CONF_HASH_MUST_EXIST = "HASH_MUST_EXIST"
CONF_HASH_OUTPUT = "HASH_OUTPUT"
CONF_HASH_FILENAME = "HASH_FILENAME"
CONF_HASH_FILEFORMAT = "HASH_FILEFORMAT"


class HashTask(Task):
    """Common base: HASH_TYPE and access to the item's hash cache."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.hash_type: str = ""
        self.cache: Optional[HashCache] = None

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        value = self.config.get(CONF_HASH_TYPE)
        if not value or not isinstance(value, str):
            logger.error(f"{self.name}: No valid {CONF_HASH_TYPE} configured")
            self.set_config_error()
            return False

        try:
            self.hash_type = validate_hash_type(value)
        except UnsupportedHashTypeError as e:
            logger.error(f"{self.name}: {e}")
            self.set_config_error()
            return False
        return True

    def init(self) -> bool:
        if not super().init():
            return False
        if not self.check_temp_folder():
            return False
        self.cache = HashCache(self.folder.base_folder, self.context.temp_folder, self.hash_type)
        return True

    def source_files(self) -> List[Path]:
        return paths.folder_files(self.source_folder)


class HashGenerate(HashTask):
    """
    Compute digests of all files in a folder and store them in the cache.

    Files with a usable cache entry are not hashed again. Two files with
    the same digest are reported, since that usually means a copy mistake.
    """

    name = "HashGenerate"
    label = "Generate hashcodes"

    def run(self) -> bool:
        hashes: Dict[str, str] = {}
        errors_write = 0

        for source_file in self.source_files():
            cached = self.cache.get(source_file)
            if cached:
                logger.debug(f"Using cached {self.hash_type} for '{source_file.name}': {cached}")
                hashes[str(source_file)] = cached
                continue

            if not self.cache.check_writable(source_file):
                logger.error(f"Hash cache not writable for '{source_file}'")
                errors_write += 1
                continue

            logger.info(f"Generating {self.hash_type} for '{source_file.name}'...")
            try:
                hash_code = self.cache.compute(source_file)
            except HashCacheError as e:
                logger.error(str(e))
                errors_write += 1
                continue
            logger.info(f"{self.hash_type}: {hash_code}  {source_file.name}")
            hashes[str(source_file)] = hash_code

        if errors_write:
            logger.error(f"{errors_write} problems encountered while saving hashcodes to file.")
            self.set_error()
            return False

        duplicates = find_duplicates(hashes)
        if duplicates:
            for hash_code, files in duplicates.items():
                logger.error(
                    f"Identical {self.hash_type} ({hash_code}) for: "
                    f"{', '.join(Path(f).name for f in files)}"
                )
            self.set_pbc()
            return True

        self.set_done()
        return True


class HashSearch(HashTask):
    """
    Look for pre-existing digests (e.g. delivered ``*.md5`` files).

    Files matching HASH_MUST_EXIST must be confirmed by such a digest.
    For unconfirmed files the cache entry is purged, so that the digest
    is computed again after an operator fixed the delivery.
    """

    name = "HashSearch"
    label = "Search pre-existing hashcodes"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.search_patterns: List[str] = []
        self.must_exist: List[str] = []
        self.found: Dict[str, Dict[str, Dict[int, str]]] = {}

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        search = self.config.get(CONF_HASH_SEARCH)
        if not search:
            return self.skip_it()
        if not self.option_is_list(search, CONF_HASH_SEARCH):
            return False
        self.search_patterns = [str(p) for p in search]

        must_exist = self.config.get(CONF_HASH_MUST_EXIST)
        if must_exist:
            if not self.option_is_list(must_exist, CONF_HASH_MUST_EXIST):
                return False
            self.must_exist = [str(p) for p in must_exist]
        return True

    def run(self) -> bool:
        search_files: Set[Path] = set(paths.glob_entries(self.source_folder, self.search_patterns))
        errors = 0

        for source_file in self.source_files():
            if source_file in search_files:
                continue

            hash_code = self.cache.get(source_file)
            if not hash_code:
                logger.error(f"No cached {self.hash_type} for '{source_file.name}'. Was it generated?")
                errors += 1
                continue

            try:
                matches = search_hash(self.source_folder, self.search_patterns, hash_code)
            except HashError as e:
                logger.error(str(e))
                errors += 1
                continue

            if matches:
                self.found[str(source_file)] = matches
                logger.info(
                    f"Found {self.hash_type} of '{source_file.name}' in: "
                    f"{', '.join(Path(f).name for f in matches)}"
                )
            else:
                logger.debug(f"No pre-existing {self.hash_type} for '{source_file.name}'")

        errors += self.check_must_exist()

        if errors:
            self.set_pbct()
            return False

        self.set_done()
        return True

    def check_must_exist(self) -> int:
        """Purge cache entries of required files without a confirmed digest."""
        if not self.must_exist:
            return 0

        missing = 0
        for source_file in paths.glob_entries(self.source_folder, self.must_exist):
            if not source_file.is_file() or str(source_file) in self.found:
                continue
            logger.error(f"No pre-existing {self.hash_type} found for '{source_file.name}'")
            self.cache.remove(source_file)
            missing += 1
        return missing


class HashValidate(HashTask):
    """
    Recompute digests of staged copies and compare them with the source.

    A mismatch leaves the staging folder as it is. RenameTarget does not
    merge stages recorded as failed.
    """

    name = "HashValidate"
    label = "Validate hashcodes"
    requires_target = True

    def run(self) -> bool:
        stage = Path(self.target_folder_stage)
        skipped = {
            v for v in (self.context.memory.recall(MEM_COPY_SKIPPED, strict=False) or {}).values()
        }
        problems = 0

        for source_file in self.source_files():
            if self.exclude(source_file):
                continue

            staged_file = paths.target_filename(source_file, stage)
            if not staged_file.is_file():
                if str(source_file) in skipped:
                    logger.info(f"Not staged (copy skipped): '{source_file.name}'")
                    continue
                logger.error(f"Staged file missing: {staged_file}")
                problems += 1
                continue

            source_hash = self.cache.get(source_file)
            if not source_hash:
                logger.error(f"No cached {self.hash_type} for '{source_file.name}'")
                problems += 1
                continue

            target_hash = compute_file_hash(staged_file, self.hash_type)
            if not compare_hashes(source_hash, target_hash):
                logger.error(
                    f"{self.hash_type} mismatch for '{source_file.name}': "
                    f"source={source_hash} target={target_hash}"
                )
                problems += 1
                continue
            logger.info(f"{self.hash_type} OK: '{source_file.name}'")

        if problems:
            self.context.memory.remember(MEM_VALIDATION_FAILED, str(stage), append=True)
            self.set_pbc()
            return True

        self.set_done()
        return True


class HashOutput(HashTask):
    """
    Write hash files next to the promoted data in the target folder.

    HASH_OUTPUT = file    one hash file per source file
    HASH_OUTPUT = folder  one merged hash file per folder
    """

    name = "HashOutput"
    label = "Write hashcode files"
    requires_target = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.output_mode: Optional[HashOutputMode] = None
        self.filename_mask: str = ""
        self.file_format: Optional[HashFileFormat] = None

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        output = self.config.get(CONF_HASH_OUTPUT)
        mask = self.config.get(CONF_HASH_FILENAME)
        file_format = self.config.get(CONF_HASH_FILEFORMAT)
        if not output or not mask or not file_format:
            logger.info(f"{self.name}: Hash output not configured. Nothing to do.")
            self.set_done()
            return True

        try:
            self.output_mode = HashOutputMode(str(output).lower())
            self.file_format = HashFileFormat(str(file_format).lower())
        except ValueError as e:
            logger.error(f"{self.name}: Invalid option: {e}")
            self.set_config_error()
            return False

        self.filename_mask = str(mask)
        return True

    def run(self) -> bool:
        target = Path(self.target_folder)
        if not target.is_dir():
            logger.error(f"Target folder does not exist: {target}")
            self.set_pbct()
            return False

        try:
            if self.output_mode == HashOutputMode.FOLDER:
                ok = self.write_folder_hashfile(target)
            else:
                ok = self.write_file_hashfiles(target)
        except MaskError as e:
            logger.error(f"{self.name}: {e}")
            self.set_config_error()
            return False

        if not ok:
            self.set_pbct()
            return False

        self.set_done()
        return True

    def _source_hashes(self, skip_name: Optional[str] = None) -> Optional[Dict[Path, str]]:
        result: Dict[Path, str] = {}
        missing = 0
        for source_file in self.source_files():
            if source_file.name == skip_name or self.exclude(source_file):
                continue
            hash_code = self.cache.get(source_file)
            if not hash_code:
                logger.error(f"No cached {self.hash_type} for '{source_file.name}'")
                missing += 1
                continue
            result[source_file] = hash_code
        if missing:
            return None
        return result

    def write_folder_hashfile(self, target: Path) -> bool:
        hashfile = target / paths.apply_mask(self.filename_mask, target.name)
        hashes = self._source_hashes(skip_name=hashfile.name)
        if hashes is None:
            return False

        lines: List[str] = []
        if hashfile.exists():
            lines = hashfile.read_text(encoding="utf-8").splitlines(keepends=True)
        for source_file, hash_code in hashes.items():
            lines.append(format_hash_line(self.file_format, self.hash_type, hash_code, source_file))

        unique: List[str] = []
        for line in lines:
            if line not in unique:
                unique.append(line)

        hashfile.write_text("".join(unique), encoding="utf-8", newline="")
        logger.info(f"Hashcode file written: {hashfile} ({len(hashes)} entries)")
        return True

    def write_file_hashfiles(self, target: Path) -> bool:
        hashes = self._source_hashes()
        if hashes is None:
            return False

        for source_file, hash_code in hashes.items():
            hashfile = target / paths.apply_mask(self.filename_mask, source_file.name)
            hashfile.write_text(
                format_hash_line(self.file_format, self.hash_type, hash_code, source_file),
                encoding="utf-8",
                newline="",
            )
            logger.info(f"Hashcode file written: {hashfile}")
        return True
