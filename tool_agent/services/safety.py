"""Command safety validation for model-generated shell commands.

Commands come from an untrusted generator, so the policy is default-deny: a
command is accepted only when it contains none of the blocked substrings and
its first argv token is exactly one of the allowed, read-only command names.
"""

import shlex
from dataclasses import dataclass, field

from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

ALLOWED_COMMANDS = frozenset(
    {
        "ls",
        "pwd",
        "whoami",
        "date",
        "cat",
        "head",
        "tail",
        "wc",
        "echo",
        "uname",
        "hostname",
        "id",
        "uptime",
        "df",
        "du",
        "ps",
        "find",
        "grep",
        "which",
        "stat",
    }
)

# Mutation, chaining, redirection, substitution and privilege escalation.
BLOCKED_SUBSTRINGS = (
    ";",
    "&",
    "|",
    ">",
    "<",
    "`",
    "$(",
    "${",
    "\n",
    "\r",
    "rm ",
    "mv ",
    "cp ",
    "dd ",
    "sudo",
    "su ",
    "chmod",
    "chown",
    "mkfs",
    "kill",
    "shutdown",
    "reboot",
    "-exec",
    "-delete",
    "-fprint",
    "-fls",
    "-ok",
    "-okdir",
    "curl",
    "wget",
)


@dataclass(frozen=True)
class CommandPolicy:
    """Allow-list and block-list applied to candidate commands."""

    allowed_commands: frozenset[str] = ALLOWED_COMMANDS
    blocked_substrings: tuple[str, ...] = BLOCKED_SUBSTRINGS
    extra_allowed: frozenset[str] = field(default_factory=frozenset)

    def check(self, command: str) -> str | None:
        """Return the reason ``command`` is rejected, or None if it is safe."""
        if not command or not command.strip():
            return "empty command"

        for blocked in self.blocked_substrings:
            if blocked in command:
                return f"contains blocked sequence {blocked!r}"

        try:
            argv = shlex.split(command)
        except ValueError as e:
            return f"cannot be parsed: {e}"
        if not argv:
            return "empty command"

        program = argv[0]
        if program not in self.allowed_commands and program not in self.extra_allowed:
            return f"'{program}' is not an allowed command"

        return None

    def is_safe(self, command: str) -> bool:
        """Pure predicate: True only for explicitly accepted commands."""
        return self.check(command) is None


DEFAULT_POLICY = CommandPolicy()


def is_safe(command: str, policy: CommandPolicy = DEFAULT_POLICY) -> bool:
    """Check a command against the default policy."""
    reason = policy.check(command)
    if reason is not None:
        logger.debug(f"Command rejected ({reason}): {command!r}")
        return False
    return True
