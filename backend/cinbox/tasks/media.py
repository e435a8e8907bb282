"""
External media tools: one output file per input file per recipe.

Each tool reads three aligned lists. Entry N of each list forms one
recipe:

    FFMPEG_IN[]     = *.mkv
    FFMPEG_OUT[]    = [@FILE_IN_NOEXT@].mp4
    FFMPEG_RECIPE[] = ffmpeg -nostdin -i "[@FILE_IN@]" -c copy "[@FILE_OUT@]"

Every file matching the IN pattern gets its output name from the OUT
mask, resolved with that file's placeholders. Relative output names are
placed in the source folder. The recipe is then resolved with the file
pair's placeholders and run once per pair.

Recipe exit codes follow the processor contract (status.py). A non-zero
code outside the contract means the tool failed on that file (PBCT).

Command lines and console output are appended to one command logfile per
task run (``[@LOGFILE@]``). It is removed when every recipe succeeded.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Dict, List, Optional

from ..config import Placeholder, SettingsError, as_bool, file_placeholders, resolve_string
from ..execution import (
    CommandNotFoundError,
    CommandResult,
    CommandRunner,
    ExecError,
    check_executable,
    command_program,
)
from ..folders import paths
from ..hashing import HashCache, compare_hashes, load_hash_from_file
from .base import Task
from .status import EXIT_CODE_STATUS, TaskStatus, aborts_pipeline

logger = logging.getLogger(__name__)


CONF_FF_IN = "FF_IN"
CONF_FF_OUT = "FF_OUT"
CONF_FF_RECIPE = "FF_RECIPE"

CONF_FFMPEG_IN = "FFMPEG_IN"
CONF_FFMPEG_OUT = "FFMPEG_OUT"
CONF_FFMPEG_RECIPE = "FFMPEG_RECIPE"
CONF_FFMPEG_VALIDATE = "FFMPEG_VALIDATE"
CONF_FFMPEG_HASH_TYPE = "FFMPEG_HASH_TYPE"

CONF_MEDIAINFO_IN = "MEDIAINFO_IN"
CONF_MEDIAINFO_OUT = "MEDIAINFO_OUT"
CONF_MEDIAINFO_RECIPE = "MEDIAINFO_RECIPE"

CONF_MCONCH_IN = "MCONCH_IN"
CONF_MCONCH_OUT = "MCONCH_OUT"
CONF_MCONCH_RECIPES = "MCONCH_RECIPES"
CONF_MCONCH_REACTIONS = "MCONCH_REACTIONS"

# Algorithms of the ffmpeg "hash" muxer
FFMPEG_HASH_TYPES = (
    "md5", "murmur3",
    "ripemd128", "ripemd160", "ripemd256", "ripemd320",
    "sha160", "sha224", "sha256", "sha512/224", "sha512/256", "sha384", "sha512",
    "crc32", "adler32",
)
DEFAULT_FFMPEG_HASH_TYPE = "md5"

FFMPEG_HASH_MASK = (
    '"{ffmpeg}" -nostdin -y -v error -i "{source}" '
    '-f hash -hash {hash_type} {drop} "{hash_file}"'
)

# Stream kind -> (ffmpeg option dropping the other kind, hash file tag)
HASH_STREAMS: Dict[str, tuple] = {
    "video": ("-an", "v"),
    "audio": ("-vn", "a"),
}

REACTION_WARNING = "warning"
REACTION_ABORT = "abort"

MCONCH_REACTIONS: Dict[str, TaskStatus] = {
    REACTION_WARNING: TaskStatus.PBC,
    REACTION_ABORT: TaskStatus.ERROR,
}

# Line prefix of a failed policy check in MediaConch's "failpass" output
MCONCH_FAIL_PREFIX = "fail!"


def recipe_status(exit_code: int) -> TaskStatus:
    """Status for a recipe exit code. Codes outside the contract are PBCT."""
    return EXIT_CODE_STATUS.get(exit_code, TaskStatus.PBCT)


@dataclass
class RecipeCall:
    """One resolved recipe call for a single input file."""

    index: int
    recipe: str
    file_in: Path
    file_out: Path


class _ExecFFTask(Task):
    """
    Base for in/out/recipe tools.

    Subclasses set the three option names and ``tool_name``. All three
    options are required lists of equal length; any of them unset skips
    the task.
    """

    conf_sources: ClassVar[str] = CONF_FF_IN
    conf_targets: ClassVar[str] = CONF_FF_OUT
    conf_recipes: ClassVar[str] = CONF_FF_RECIPE
    tool_name: ClassVar[str] = "Tool"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sources: List[str] = []
        self.targets: List[str] = []
        self.recipes: List[str] = []
        self.calls: List[RecipeCall] = []
        self.logfile: Optional[Path] = None
        self.runner = CommandRunner(cwd=self.folder.path)

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        options = []
        for key in (self.conf_sources, self.conf_targets, self.conf_recipes):
            value = self.config.get(key)
            if not value:
                logger.debug(f"{self.name}: '{key}' not set")
                return self.skip_it()
            if not self.option_is_list(value, key):
                return False
            options.append([str(v) for v in value])
        self.sources, self.targets, self.recipes = options

        if not len(self.sources) == len(self.targets) == len(self.recipes):
            logger.error(
                f"{self.name}: '{self.conf_sources}', '{self.conf_targets}' and "
                f"'{self.conf_recipes}' must have the same number of entries "
                f"({len(self.sources)}/{len(self.targets)}/{len(self.recipes)}). "
                "Please check config file!"
            )
            self.set_config_error()
            return False
        return True

    def init(self) -> bool:
        if not super().init():
            return False
        if not self.check_temp_folder():
            return False

        self.logfile = self.command_logfile()
        self.calls = self.create_call_list()
        return True

    def run(self) -> bool:
        if not self.calls:
            logger.info(f"{self.name}: No files found. Nothing done. That's okay.")
            self.set_done()
            return True

        errors = 0
        for call in self.calls:
            status = self.run_recipe(call)
            self.set_status(status)
            if status not in (TaskStatus.DONE, TaskStatus.SKIPPED):
                errors += 1
            if aborts_pipeline(status):
                return False

        logger.info(f"{self.name}: Processed {len(self.calls)} files.")
        if errors:
            logger.error(
                f"{self.name}: Error processing {errors} files. "
                f"For details see logfile: '{self.logfile}'"
            )
            return False
        return True

    def finalize(self) -> bool:
        return self.remove_command_logfile(self.logfile)

    # -------------------------------------------------------------------------
    # Recipe resolution
    # -------------------------------------------------------------------------

    def output_file(self, target_mask: str, file_in: Path) -> Path:
        """Resolve an OUT mask for one input file. Relative names land in the source folder."""
        table = self.config.placeholders
        table.update(file_placeholders(str(file_in)))
        file_out = Path(resolve_string(target_mask, table))
        if not file_out.is_absolute():
            file_out = self.source_folder / file_out
        return file_out

    def create_call_list(self) -> List[RecipeCall]:
        """Pair every matching input file with its output file, per recipe."""
        calls = []
        for index, (source, target, recipe) in enumerate(zip(self.sources, self.targets, self.recipes)):
            files_in = [p for p in paths.glob_entries(self.source_folder, [source]) if p.is_file()]
            if not files_in:
                logger.info(f"{self.name}: No files matching '{source}'. That's okay.")
                continue

            logger.info(f"{self.name}: Found {len(files_in)} source files matching '{source}'.")
            for file_in in files_in:
                file_out = self.output_file(target, file_in)
                logger.debug(f"Source file: '{file_in}' => Target file: '{file_out}'")
                calls.append(RecipeCall(index=index, recipe=recipe, file_in=file_in, file_out=file_out))
        return calls

    def recipe_command(self, call: RecipeCall) -> str:
        table = self.config.placeholders
        table.update(file_placeholders(str(call.file_in), str(call.file_out)))
        table[Placeholder.LOGFILE.value] = str(self.logfile)
        return resolve_string(call.recipe, table)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def write_command_log(self, text: str) -> None:
        with open(self.logfile, "a", encoding="utf-8") as f:
            f.write(text)

    def run_recipe(self, call: RecipeCall) -> TaskStatus:
        command = self.recipe_command(call)
        try:
            check_executable(command)
        except CommandNotFoundError as e:
            logger.error(f"{self.name}: {e}")
            return TaskStatus.CONFIG_ERROR

        logger.info(f"{self.tool_name} processing '{call.file_in}'...")
        # Written before execution so a crash still leaves the command line
        self.write_command_log(f"Command line and complete, uncut console output:\n\n{command}\n\n")
        try:
            result = self.runner.execute(command)
        except (ExecError, OSError) as e:
            logger.error(f"{self.name}: Failed to execute '{command}': {e}")
            return TaskStatus.ERROR
        self.write_command_log("\n".join(result.output) + "\n\n")

        return self.check_result(call, result)

    def check_result(self, call: RecipeCall, result: CommandResult) -> TaskStatus:
        """Status of one finished recipe call."""
        status = recipe_status(result.exit_code)
        if status not in (TaskStatus.DONE, TaskStatus.SKIPPED):
            logger.error(
                f"{self.tool_name} command returned exit code '{result.exit_code}' "
                f"({status.name}) for '{call.file_in}'"
            )
        return status


class FFmpeg(_ExecFFTask):
    """
    Media conversion with FFmpeg.

    With FFMPEG_VALIDATE[] enabled for a recipe, the decoded video and
    audio content of input and output are hashed with ffmpeg's "hash"
    muxer and compared. A mismatch means the conversion was not lossless
    (PBC). The hash files are kept in the item temp folder as
    ``<file>.in.v.<type>`` / ``<file>.out.v.<type>`` (``a`` for audio).
    """

    name = "FFmpeg"
    label = "Run FFmpeg for media conversion"
    conf_sources = CONF_FFMPEG_IN
    conf_targets = CONF_FFMPEG_OUT
    conf_recipes = CONF_FFMPEG_RECIPE
    tool_name = "FFmpeg"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.hash_type = DEFAULT_FFMPEG_HASH_TYPE
        self.validates: List[bool] = []

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False
        if self.skipped:
            return True

        hash_type = str(self.config.get(CONF_FFMPEG_HASH_TYPE) or DEFAULT_FFMPEG_HASH_TYPE).strip().lower()
        if hash_type not in FFMPEG_HASH_TYPES:
            logger.error(
                f"Hash type '{hash_type}' is not supported by FFmpeg. "
                f"Valid types are: {' '.join(FFMPEG_HASH_TYPES)}"
            )
            self.set_config_error()
            return False
        self.hash_type = hash_type

        value = self.config.get(CONF_FFMPEG_VALIDATE)
        if not value:
            self.validates = [False] * len(self.recipes)
            return True
        if not self.option_is_list(value, CONF_FFMPEG_VALIDATE):
            return False
        if len(value) != len(self.recipes):
            logger.error(
                f"'{CONF_FFMPEG_VALIDATE}' needs one entry per recipe "
                f"({len(value)} given, {len(self.recipes)} recipes)"
            )
            self.set_config_error()
            return False
        try:
            self.validates = [as_bool(v, CONF_FFMPEG_VALIDATE) for v in value]
        except SettingsError as e:
            logger.error(f"{self.name}: {e}")
            self.set_config_error()
            return False
        return True

    def check_result(self, call: RecipeCall, result: CommandResult) -> TaskStatus:
        status = super().check_result(call, result)
        if status == TaskStatus.DONE and self.validates[call.index]:
            if not self.validate_content(call, command_program(result.command)):
                return TaskStatus.PBC
        return status

    def hash_file(self, source_file: Path, stream: str, side: str) -> Path:
        tag = HASH_STREAMS[stream][1]
        suffix = f"{side}.{tag}.{self.hash_type.replace('/', '_')}"
        return HashCache(self.folder.base_folder, self.context.temp_folder, suffix).cache_path(source_file)

    def content_hash(self, ffmpeg: str, source: Path, hash_file: Path, stream: str) -> Optional[str]:
        """
        Content hash of one stream kind.

        Returns:
            Hash file contents, or None if ffmpeg failed (e.g. no such stream)
        """
        hash_file.parent.mkdir(parents=True, exist_ok=True)
        command = FFMPEG_HASH_MASK.format(
            ffmpeg=ffmpeg,
            source=source,
            hash_type=self.hash_type,
            drop=HASH_STREAMS[stream][0],
            hash_file=hash_file,
        )
        result = self.runner.execute(command)
        self.write_command_log(f"{command}\n" + "\n".join(result.output) + "\n\n")
        if not result.ok or not hash_file.is_file():
            logger.debug(f"No {stream} content hash for '{source}' (exit code {result.exit_code})")
            return None
        return load_hash_from_file(hash_file)

    def validate_content(self, call: RecipeCall, ffmpeg: str) -> bool:
        compared = 0
        for stream in HASH_STREAMS:
            hash_in = self.content_hash(ffmpeg, call.file_in, self.hash_file(call.file_in, stream, "in"), stream)
            hash_out = self.content_hash(ffmpeg, call.file_out, self.hash_file(call.file_in, stream, "out"), stream)

            if hash_in is None and hash_out is None:
                continue
            if hash_in is None or hash_out is None or not compare_hashes(hash_in, hash_out):
                logger.error(
                    f"Content hash mismatch ({stream}, {self.hash_type}): "
                    f"'{call.file_in}' ({hash_in}) != '{call.file_out}' ({hash_out})"
                )
                return False
            logger.info(f"Content hash ({stream}) matches for '{call.file_out.name}': {hash_out}")
            compared += 1

        if not compared:
            logger.error(f"Could not compute any content hash for '{call.file_in}'")
            return False
        return True


class MediaInfo(_ExecFFTask):
    name = "MediaInfo"
    label = "Run MediaInfo"
    conf_sources = CONF_MEDIAINFO_IN
    conf_targets = CONF_MEDIAINFO_OUT
    conf_recipes = CONF_MEDIAINFO_RECIPE
    tool_name = "MediaInfo"


class MediaConch(_ExecFFTask):
    """
    Policy checks with MediaConch.

    MCONCH_REACTIONS[] holds one reaction per recipe for a failed policy:
    ``warning`` (PBC, processing goes on) or ``abort`` (ERROR). A policy
    has failed when the command exits non-zero, or when its console
    output or report file has a line starting with ``fail!``.
    """

    name = "MediaConch"
    label = "Run MediaConch policy validator"
    conf_sources = CONF_MCONCH_IN
    conf_targets = CONF_MCONCH_OUT
    conf_recipes = CONF_MCONCH_RECIPES
    tool_name = "MediaConch"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reactions: List[str] = []

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False
        if self.skipped:
            return True

        value = self.config.get(CONF_MCONCH_REACTIONS)
        if not value:
            return self.skip_it()
        if not self.option_is_list(value, CONF_MCONCH_REACTIONS):
            return False

        reactions = [str(v).strip().lower() for v in value]
        if len(reactions) != len(self.recipes):
            logger.error(
                f"'{CONF_MCONCH_REACTIONS}' needs one entry per recipe "
                f"({len(reactions)} given, {len(self.recipes)} recipes)"
            )
            self.set_config_error()
            return False

        invalid = [r for r in reactions if r not in MCONCH_REACTIONS]
        if invalid:
            logger.error(
                f"Invalid value(s) for '{CONF_MCONCH_REACTIONS}': {', '.join(invalid)}. "
                f"Valid are: {', '.join(MCONCH_REACTIONS)}"
            )
            self.set_config_error()
            return False

        self.reactions = reactions
        return True

    def policy_failed(self, call: RecipeCall, result: CommandResult) -> bool:
        lines = list(result.output)
        if call.file_out.is_file():
            lines += call.file_out.read_text(encoding="utf-8", errors="replace").splitlines()
        return any(line.strip().lower().startswith(MCONCH_FAIL_PREFIX) for line in lines)

    def check_result(self, call: RecipeCall, result: CommandResult) -> TaskStatus:
        if result.ok and not self.policy_failed(call, result):
            logger.info(f"MediaConch policy passed: '{call.file_in}'")
            return TaskStatus.DONE

        reaction = self.reactions[call.index]
        status = MCONCH_REACTIONS[reaction]
        message = (
            f"MediaConch policy failed for '{call.file_in}' "
            f"(exit code {result.exit_code}, reaction: {reaction})"
        )
        if status == TaskStatus.PBC:
            logger.warning(message)
        else:
            logger.error(message)
        return status
