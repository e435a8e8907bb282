"""
Pre- and post-processors: external commands run on each folder.

A processor reports back through its exit code (see status.py). Commands
are run in configured order; a fatal result stops the remaining ones.
"""

import logging
from typing import List

from ..execution import CommandNotFoundError, CommandRunner, ExecError, check_executable
from .base import Task
from .status import TaskStatus, is_fatal, status_for_exit_code

logger = logging.getLogger(__name__)


CONF_PREPROCS = "PREPROCS"
CONF_POSTPROCS = "POSTPROCS"


class _ProcsTask(Task):
    option_name = ""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.commands: List[str] = []
        self.runner = CommandRunner(cwd=self.folder.path)

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        value = self.config.get(self.option_name)
        if not value:
            return self.skip_it()
        if not self.option_is_list(value, self.option_name):
            return False

        self.commands = [str(c) for c in value if str(c).strip()]
        if not self.commands:
            return self.skip_it()
        return True

    def run(self) -> bool:
        for mask in self.commands:
            command = self.resolve(mask)

            try:
                check_executable(command)
            except CommandNotFoundError as e:
                logger.error(f"{self.name}: {e}")
                self.set_config_error()
                return False

            try:
                result = self.runner.execute(command)
            except (ExecError, OSError) as e:
                logger.error(f"{self.name}: Failed to execute '{command}': {e}")
                self.set_error()
                return False

            status = status_for_exit_code(result.exit_code)
            if status not in (TaskStatus.DONE, TaskStatus.SKIPPED):
                logger.warning(
                    f"{self.name}: '{command}' returned {result.exit_code} ({status.name})"
                )
                for line in result.output:
                    logger.info(f"  > {line}")
            self.set_status(status)

            if is_fatal(status) or status == TaskStatus.WAIT:
                return False

        if self.status == TaskStatus.RUNNING:
            self.set_done()
        return not is_fatal(self.status)


class PreProcs(_ProcsTask):
    name = "PreProcs"
    label = "Pre-processing"
    option_name = CONF_PREPROCS


class PostProcs(_ProcsTask):
    name = "PostProcs"
    label = "Post-processing"
    option_name = CONF_POSTPROCS
