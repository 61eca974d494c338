"""Tests for kernel_finish and the kernel module writers."""

import subprocess
from unittest.mock import call

import pytest

from installer_finish.domain.models import InstallContext
from installer_finish.exceptions import CommandFailedError
from installer_finish.steps.kernel import KernelFinish
from installer_finish.system.kernel import KernelModules, ModulesConfig


@pytest.fixture
def run_on_target(mocker):
    return mocker.patch(
        "installer_finish.system.kernel.run_on_target",
        return_value=subprocess.CompletedProcess([], 0, "", ""),
    )


def make_kernels(root, *versions, base="lib/modules"):
    for version in versions:
        (root / base / version).mkdir(parents=True)


class TestModulesConfig:
    def test_render_sorted(self):
        conf = ModulesConfig("/mnt", {"snd_hda_intel": "power_save=1", "e1000e": "IntMode=1"})

        assert conf.render() == (
            "# Module options collected during installation\n"
            "options e1000e IntMode=1\n"
            "options snd_hda_intel power_save=1\n"
        )

    def test_save_skips_unchanged_unless_forced(self, target_root):
        conf = ModulesConfig(str(target_root), {"loop": "max_loop=64"})

        assert conf.save() is True
        assert conf.save() is False
        assert conf.save(force=True) is True
        assert "options loop max_loop=64" in conf.conf_path.read_text()

    def test_kernel_versions_from_both_dirs(self, target_root):
        make_kernels(target_root, "6.4.0-1-default")
        make_kernels(target_root, "6.4.0-1-default", "6.5.0-2-default", base="usr/lib/modules")

        conf = ModulesConfig(str(target_root))

        assert conf.kernel_versions() == ["6.4.0-1-default", "6.5.0-2-default"]

    def test_run_depmod_per_kernel(self, target_root, run_on_target):
        make_kernels(target_root, "6.4.0-1-default", "6.5.0-2-default")
        conf = ModulesConfig(str(target_root))

        assert conf.run_depmod(force=True) is True
        assert run_on_target.call_args_list == [
            call(str(target_root), ["depmod", "-a", "6.4.0-1-default"]),
            call(str(target_root), ["depmod", "-a", "6.5.0-2-default"]),
        ]

    def test_run_depmod_unforced_uses_quick_mode(self, target_root, run_on_target):
        make_kernels(target_root, "6.4.0-1-default")

        ModulesConfig(str(target_root)).run_depmod()

        run_on_target.assert_called_once_with(
            str(target_root), ["depmod", "-A", "6.4.0-1-default"]
        )

    def test_run_depmod_without_kernels(self, target_root, run_on_target):
        assert ModulesConfig(str(target_root)).run_depmod() is True
        run_on_target.assert_not_called()

    def test_run_depmod_failure_continues(self, target_root, run_on_target):
        make_kernels(target_root, "6.4.0-1-default", "6.5.0-2-default")
        run_on_target.side_effect = [
            CommandFailedError(["depmod"], 1, "FATAL"),
            subprocess.CompletedProcess([], 0, "", ""),
        ]

        assert ModulesConfig(str(target_root)).run_depmod() is False
        assert run_on_target.call_count == 2


class TestKernelModules:
    def test_deduplicates(self):
        kernel = KernelModules("/mnt", ["loop", "loop"])
        kernel.add_module_to_load("fuse")
        kernel.add_module_to_load("loop")

        assert kernel.modules_to_load == ["loop", "fuse"]

    def test_save_writes_one_file_per_module(self, target_root):
        kernel = KernelModules(str(target_root), ["loop", "fuse"])

        written = kernel.save_modules_to_load()

        load_dir = target_root / "etc" / "modules-load.d"
        assert written == [load_dir / "loop.conf", load_dir / "fuse.conf"]
        assert (load_dir / "fuse.conf").read_text() == "fuse\n"

    def test_save_nothing(self, target_root):
        assert KernelModules(str(target_root)).save_modules_to_load() == []
        assert not (target_root / "etc" / "modules-load.d").exists()


class TestKernelFinish:
    def test_write_saves_config(self, install_context, target_root, tmp_path):
        step = KernelFinish.from_settings(
            install_context,
            {"kernel_module_options": {"loop": "max_loop=64"}, "modules_to_load": ["fuse"]},
        )
        step.sgi_sn_path = str(tmp_path / "no_sgi_sn")

        assert step.call("Write") is None

        assert (target_root / "etc" / "modprobe.d" / "50-installer.conf").exists()
        assert (target_root / "etc" / "modules-load.d" / "fuse.conf").exists()
        assert not (target_root / "etc" / "modules-load.d" / "mmtimer.conf").exists()

    def test_sgi_altix_adds_modules(self, install_context, target_root, tmp_path):
        sgi_sn = tmp_path / "sgi_sn"
        sgi_sn.write_text("1\n")
        step = KernelFinish(install_context, sgi_sn_path=str(sgi_sn))

        step.call("Write")

        assert step.kernel.modules_to_load == ["fetchop", "mmtimer"]
        load_dir = target_root / "etc" / "modules-load.d"
        assert (load_dir / "fetchop.conf").read_text() == "fetchop\n"
        assert (load_dir / "mmtimer.conf").read_text() == "mmtimer\n"

    def test_empty_sgi_sn_is_not_altix(self, install_context, tmp_path):
        sgi_sn = tmp_path / "sgi_sn"
        sgi_sn.write_text("")

        assert KernelFinish(install_context, sgi_sn_path=str(sgi_sn)).is_sgi_altix() is False

    def test_write_order(self, install_context, mocker):
        modules_conf = mocker.Mock()
        kernel = mocker.Mock()
        manager = mocker.Mock()
        manager.attach_mock(modules_conf, "modules_conf")
        manager.attach_mock(kernel, "kernel")
        step = KernelFinish(install_context, modules_conf=modules_conf, kernel=kernel, sgi_sn_path="/nonexistent")

        step.call("Write")

        assert manager.mock_calls == [
            call.modules_conf.save(force=True),
            call.kernel.save_modules_to_load(),
        ]

    def test_etc_not_a_directory(self, tmp_path, log_messages):
        """Test target write errors are logged and Write reports False."""
        root = tmp_path / "broken"
        root.mkdir()
        (root / "etc").write_text("")
        step = KernelFinish.from_settings(
            InstallContext(destdir=str(root)), {"modules_to_load": ["fuse"]}
        )
        step.sgi_sn_path = str(tmp_path / "no_sgi_sn")

        assert step.call("Write") is False
        assert any(m.startswith("Cannot save kernel module options") for m in log_messages)
        assert any(m.startswith("Cannot save modules to load at boot") for m in log_messages)

    def test_modules_load_written_when_options_fail(self, install_context, target_root, tmp_path):
        (target_root / "etc" / "modprobe.d").write_text("")
        step = KernelFinish.from_settings(install_context, {"modules_to_load": ["fuse"]})
        step.sgi_sn_path = str(tmp_path / "no_sgi_sn")

        assert step.call("Write") is False
        assert (target_root / "etc" / "modules-load.d" / "fuse.conf").read_text() == "fuse\n"
