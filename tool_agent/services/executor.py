"""Command execution for validated shell commands."""

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from tool_agent.exceptions import CommandSpawnError
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

READ_CHUNK_SIZE = 4096


@dataclass
class CommandOutput:
    """Captured result of a finished command."""

    stdout: str
    exit_status: int
    truncated: bool = False


class CommandExecutor:
    """Runs commands and captures their output.

    PRECONDITION (unchecked): the command has already been accepted by
    ``CommandPolicy.check``. This class performs no safety checks of its own.

    Commands are split with ``shlex`` and executed directly, never through a
    shell, so no interpolation, globbing or chaining takes place. Standard error
    is merged into the captured output. Output beyond ``max_output_bytes`` is
    read and discarded so the process can finish; the returned output is
    flagged ``truncated``.
    """

    def __init__(self, max_output_bytes: int = 65536, cwd: Path | None = None):
        self.max_output_bytes = max_output_bytes
        self.cwd = cwd

    def run(self, command: str) -> CommandOutput:
        """Run ``command`` to completion.

        Raises:
            CommandSpawnError: If the command cannot be parsed or started
        """
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise CommandSpawnError(command, str(e)) from e
        if not argv:
            raise CommandSpawnError(command, "empty command")

        logger.info(f"Executing command: {argv}")
        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=self.cwd,
            )
        except OSError as e:
            raise CommandSpawnError(command, e.strerror or str(e)) from e

        captured = bytearray()
        truncated = False
        with process:
            assert process.stdout is not None
            while chunk := process.stdout.read(READ_CHUNK_SIZE):
                room = self.max_output_bytes - len(captured)
                if len(chunk) > room:
                    truncated = True
                    captured.extend(chunk[: max(room, 0)])
                else:
                    captured.extend(chunk)
            exit_status = process.wait()

        if truncated:
            logger.warning(f"Output of {argv[0]} exceeded {self.max_output_bytes} bytes and was truncated")
        logger.debug(f"Command {argv[0]} exited with status {exit_status}")

        return CommandOutput(
            stdout=captured.decode("utf-8", errors="replace"),
            exit_status=exit_status,
            truncated=truncated,
        )
