"""Tests for external command execution."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from installer_finish.exceptions import CommandFailedError, PermissionFailureError
from installer_finish.system.command import (
    format_command,
    is_permission_failure,
    run_command,
    run_on_target,
    target_command,
)


class TestRunCommand:
    @patch("subprocess.run")
    def test_success(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="ok\n", stderr="")

        result = run_command(["umount", "/mnt"])

        assert result.stdout == "ok\n"
        mock_run.assert_called_once_with(
            ["umount", "/mnt"],
            check=False,
            text=True,
            capture_output=True,
            env=None,
        )

    @patch("subprocess.run")
    def test_failure_raises(self, mock_run):
        mock_run.return_value = Mock(returncode=32, stdout="", stderr="umount: /mnt: target is busy.\n")

        with pytest.raises(CommandFailedError) as excinfo:
            run_command(["umount", "/mnt"])

        assert not isinstance(excinfo.value, PermissionFailureError)
        assert excinfo.value.returncode == 32
        assert excinfo.value.stderr == "umount: /mnt: target is busy."

    @patch("subprocess.run")
    def test_permission_failure(self, mock_run):
        mock_run.return_value = Mock(
            returncode=32, stdout="", stderr="umount: /mnt: must be superuser to unmount.\n"
        )

        with pytest.raises(PermissionFailureError):
            run_command(["umount", "/mnt"])

    @patch("subprocess.run")
    def test_no_check(self, mock_run):
        mock_run.return_value = Mock(returncode=1, stdout="", stderr="no process found")

        result = run_command(["fuser", "-v", "-m", "/mnt"], check=False)

        assert result.returncode == 1

    @patch("subprocess.run")
    def test_env_layered_over_environ(self, mock_run, monkeypatch):
        monkeypatch.setenv("PATH", "/usr/bin")
        mock_run.return_value = Mock(returncode=0, stdout="", stderr="")

        run_command(["fuser"], env={"LC_ALL": "C"})

        env = mock_run.call_args.kwargs["env"]
        assert env["LC_ALL"] == "C"
        assert env["PATH"] == "/usr/bin"

    @patch("subprocess.run", side_effect=FileNotFoundError("fuser"))
    def test_missing_executable_propagates(self, mock_run):
        with pytest.raises(FileNotFoundError):
            run_command(["fuser"])


class TestTargetCommand:
    def test_root_destdir_runs_directly(self):
        assert target_command("/", ["depmod", "-a"]) == ["depmod", "-a"]
        assert target_command("", ["depmod"]) == ["depmod"]

    def test_chroot_prefix(self):
        assert target_command("/mnt", ["depmod", "-a"]) == ["chroot", "/mnt", "depmod", "-a"]

    @patch("installer_finish.system.command.run_command")
    def test_run_on_target(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess([], 0, "", "")

        run_on_target("/mnt", ["snapper", "list"], check=False)

        mock_run.assert_called_once_with(["chroot", "/mnt", "snapper", "list"], check=False)


class TestHelpers:
    def test_format_command_quotes(self):
        assert format_command(["btrfs", "property", "set", "/my dir"]) == (
            "btrfs property set '/my dir'"
        )

    @pytest.mark.parametrize(
        "stderr, expected",
        [
            ("Operation not permitted", True),
            ("btrfs: Permission denied", True),
            ("target is busy", False),
            ("", False),
        ],
    )
    def test_is_permission_failure(self, stderr, expected):
        assert is_permission_failure(stderr) is expected
