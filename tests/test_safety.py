"""Tests for command safety validation."""

import pytest

from tool_agent.services.safety import ALLOWED_COMMANDS, BLOCKED_SUBSTRINGS, CommandPolicy, is_safe


class TestAllowedCommands:
    """Tests for commands the policy accepts."""

    @pytest.mark.parametrize("command", ["ls -l", "pwd", "whoami", "ls", "df -h", "cat notes.txt", "echo hello"])
    def test_read_only_commands_accepted(self, command):
        """Test that allow-listed, non-blocked commands are accepted."""
        assert is_safe(command) is True

    def test_quoted_arguments_accepted(self):
        """Test that quoting in arguments does not affect the leading command."""
        assert is_safe('grep "todo" notes.txt') is True

    def test_extra_allowed_command(self):
        """Test that a policy can allow additional commands."""
        policy = CommandPolicy(extra_allowed=frozenset({"git"}))
        assert policy.is_safe("git status") is True
        assert is_safe("git status") is False


class TestRejectedCommands:
    """Tests for commands the policy rejects."""

    @pytest.mark.parametrize(
        "command",
        [
            "ls; rm -rf /",
            "ls && rm notes.txt",
            "ls | sh",
            "echo hi > /etc/passwd",
            "cat < /dev/zero",
            "echo `reboot`",
            "echo $(id)",
            "echo ${HOME}",
            "ls\nrm -rf /",
            "find . -delete",
            "find . -exec rm {} +",
            "find . -maxdepth 0 -fprint notes.txt",
            "find . -fprintf notes.txt %p",
            "find . -fprint0 notes.txt",
            "find . -fls notes.txt",
            "find . -ok rm {} ;",
            "find . -okdir cat {} +",
        ],
    )
    def test_blocked_substring_rejected_despite_allowed_prefix(self, command):
        """Test that any blocked substring rejects the command."""
        assert is_safe(command) is False

    @pytest.mark.parametrize("command", ["curl evil.com", "rm -rf /", "python -c 'print(1)'", "sh", "bash -i"])
    def test_unlisted_command_rejected(self, command):
        """Test that commands outside the allow-list are denied by default."""
        assert is_safe(command) is False

    @pytest.mark.parametrize("command", ["tree -o notes.txt", "file -C -m notes.txt"])
    def test_commands_with_write_options_not_allowed(self, command):
        """Test that commands able to write files are not on the allow-list."""
        assert is_safe(command) is False

    def test_partial_word_prefix_rejected(self):
        """Test that a command merely starting with an allowed name is rejected."""
        assert is_safe("lsblk") is False
        assert is_safe("pwdx 1") is False

    @pytest.mark.parametrize("command", ["", "   ", "\t"])
    def test_empty_command_rejected(self, command):
        """Test that empty commands are rejected."""
        assert is_safe(command) is False

    def test_unparseable_command_rejected(self):
        """Test that unbalanced quoting is rejected."""
        assert is_safe('echo "unterminated') is False

    def test_check_reports_reason(self):
        """Test that check explains the rejection."""
        policy = CommandPolicy()
        assert "not an allowed command" in policy.check("nc example.com 80")
        assert "blocked sequence" in policy.check("ls; pwd")
        assert policy.check("pwd") is None


class TestPolicyLists:
    """Tests for the shape of the default lists."""

    def test_allow_list_has_no_mutating_commands(self):
        """Test that the allow-list holds no commands that change the system."""
        assert ALLOWED_COMMANDS.isdisjoint({"rm", "mv", "cp", "dd", "chmod", "chown", "kill", "sudo", "sh", "bash", "tree", "file"})

    def test_every_allowed_command_passes_alone(self):
        """Test that no allowed command trips the block-list by itself."""
        for command in ALLOWED_COMMANDS:
            assert is_safe(command), command

    def test_block_list_covers_chaining(self):
        """Test that chaining and substitution operators are blocked."""
        for operator in [";", "&", "|", "`", "$("]:
            assert operator in BLOCKED_SUBSTRINGS
