"""Tests for homebins.core.installer module."""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import patch

from homebins.config.parser import parse_manifest
from homebins.config.schemas import Manifest
from homebins.core.dirs import InstallDirs
from homebins.core.installer import Action, InstallResult, InstallSummary, ManifestInstaller


class TestInstallSummary:
    """Tests for InstallSummary class."""

    def test_counts(self):
        """Counts successes and failures."""
        summary = InstallSummary(
            results=[
                InstallResult("a", "1.0.0", True),
                InstallResult("b", "1.0.0", False, "boom"),
            ]
        )

        assert summary.success_count == 1
        assert summary.failure_count == 1
        assert not summary.all_successful

    def test_empty_is_successful(self):
        """An empty summary is successful."""
        assert InstallSummary().all_successful


class TestManifestInstaller:
    """Tests for ManifestInstaller class."""

    def test_install_and_remove(
        self,
        hello_manifest: Manifest,
        install_dirs: InstallDirs,
        hello_script: bytes,
        fake_curl: Callable[..., None],
    ):
        """Installs a manifest and removes it again."""
        installer = ManifestInstaller(install_dirs)

        with patch("homebins.core.engine.curl", side_effect=fake_curl):
            installer.install(hello_manifest)
        assert (install_dirs.bin_dir / "hello").read_bytes() == hello_script

        installer.remove(hello_manifest)
        assert not (install_dirs.bin_dir / "hello").exists()

    def test_update(
        self,
        tool_manifest: Manifest,
        install_dirs: InstallDirs,
        fake_curl: Callable[..., None],
    ):
        """Updates a manifest in place."""
        install_dirs.bin_dir.mkdir(parents=True)
        (install_dirs.bin_dir / "old-tool").write_text("legacy")

        with patch("homebins.core.engine.curl", side_effect=fake_curl):
            ManifestInstaller(install_dirs).update(tool_manifest)

        assert (install_dirs.bin_dir / "tool").exists()
        assert not (install_dirs.bin_dir / "old-tool").exists()

    def test_work_dir_cleaned_up(
        self,
        tool_manifest: Manifest,
        install_dirs: InstallDirs,
        fake_curl: Callable[..., None],
    ):
        """No work directory remains after applying a manifest."""
        with patch("homebins.core.engine.curl", side_effect=fake_curl):
            ManifestInstaller(install_dirs).install(tool_manifest)

        assert list(install_dirs.work_root.iterdir()) == []

    def test_run_continues_after_failure(
        self,
        hello_manifest: Manifest,
        tool_manifest_data: dict[str, Any],
        install_dirs: InstallDirs,
        payloads: dict[str, bytes],
        fake_curl: Callable[..., None],
    ):
        """A failing manifest is recorded and the batch continues."""
        tool_manifest_data["install"][0]["checksums"] = {"sha1": "0" * 40}
        tool = parse_manifest(tool_manifest_data)

        with patch("homebins.core.engine.curl", side_effect=fake_curl):
            summary = ManifestInstaller(install_dirs).run(Action.INSTALL, [tool, hello_manifest])

        assert [r.name for r in summary.results] == ["tool", "hello"]
        assert not summary.results[0].success
        assert "checksum mismatch" in summary.results[0].message
        assert summary.results[1].success
        assert (install_dirs.bin_dir / "hello").exists()

    def test_run_continues_after_directory_error(
        self,
        hello_manifest: Manifest,
        tool_manifest: Manifest,
        install_dirs: InstallDirs,
        temp_dir: Path,
    ):
        """A work directory which cannot be created fails each manifest, not the batch."""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        install_dirs.work_root = blocker / "work"

        with patch("homebins.core.engine.curl") as mock_curl:
            summary = ManifestInstaller(install_dirs).run(
                Action.INSTALL, [hello_manifest, tool_manifest]
            )

        assert [r.name for r in summary.results] == ["hello", "tool"]
        assert not any(r.success for r in summary.results)
        assert str(blocker) in summary.results[0].message
        mock_curl.assert_not_called()

    def test_dry_run(
        self,
        hello_manifest: Manifest,
        install_dirs: InstallDirs,
    ):
        """A dry run applies nothing."""
        with patch("homebins.core.engine.curl") as mock_curl:
            summary = ManifestInstaller(install_dirs, dry_run=True).run(
                Action.INSTALL, [hello_manifest]
            )

        assert summary.all_successful
        mock_curl.assert_not_called()
        assert not (install_dirs.bin_dir / "hello").exists()
