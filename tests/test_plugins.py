"""Tests for plugins.py - plugin list parsing and per-entry reconciliation."""

from unittest.mock import MagicMock

import pytest

from comfyui_installer.errors import InstallFailure, SyncFailure
from comfyui_installer.plugins import (
    PluginSetReconciler,
    build_locations,
    load_plugin_list,
    parse_plugin_list,
)
from comfyui_installer.repository import RepositorySynchronizer, SourceLocation

PLUGIN_LIST = """
# managers
https://github.com/ltdrdata/ComfyUI-Manager.git

   # video
https://github.com/Kosinkadink/ComfyUI-VideoHelperSuite

https://github.com/cubiq/ComfyUI_essentials.git
"""


class TestParsePluginList:
    def test_skips_blank_and_comment_lines(self):
        urls = parse_plugin_list(PLUGIN_LIST)
        assert urls == [
            "https://github.com/ltdrdata/ComfyUI-Manager.git",
            "https://github.com/Kosinkadink/ComfyUI-VideoHelperSuite",
            "https://github.com/cubiq/ComfyUI_essentials.git",
        ]

    def test_empty_text(self):
        assert parse_plugin_list("\n\n# nothing here\n") == []

    def test_missing_file_is_empty(self, tmp_path):
        assert load_plugin_list(tmp_path / "custom_nodes.txt") == []

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "custom_nodes.txt"
        path.write_text(PLUGIN_LIST, encoding="utf-8")
        assert len(load_plugin_list(path)) == 3


class TestBuildLocations:
    def test_preserves_order(self):
        locations, rejected = build_locations(parse_plugin_list(PLUGIN_LIST))
        assert [loc.name for loc in locations] == [
            "ComfyUI-Manager",
            "ComfyUI-VideoHelperSuite",
            "ComfyUI_essentials",
        ]
        assert rejected == []

    def test_directory_collision_keeps_first(self):
        locations, _ = build_locations(
            [
                "https://github.com/ltdrdata/ComfyUI-Manager.git",
                "https://github.com/Comfy-Org/ComfyUI-Manager",
            ]
        )
        assert len(locations) == 1
        assert locations[0].url == "https://github.com/ltdrdata/ComfyUI-Manager.git"

    def test_invalid_entries_are_rejected(self):
        locations, rejected = build_locations(
            ["not a url", "https://github.com/cubiq/ComfyUI_essentials.git"]
        )
        assert [loc.name for loc in locations] == ["ComfyUI_essentials"]
        assert [failure.url for failure in rejected] == ["not a url"]
        assert all(isinstance(failure, SyncFailure) for failure in rejected)

    def test_self_hosted_and_file_remotes(self):
        locations, rejected = build_locations(
            [
                "http://localhost:3000/team/MyNode.git",
                "file:///srv/git/OtherNode.git",
            ]
        )
        assert rejected == []
        assert [loc.name for loc in locations] == ["MyNode", "OtherNode"]

    def test_config_entries_follow_list_entries(self):
        locations, _ = build_locations(
            ["https://github.com/cubiq/ComfyUI_essentials.git"],
            [{"url": "https://github.com/ltdrdata/ComfyUI-Manager", "branch": "main"}],
        )
        assert [loc.name for loc in locations] == ["ComfyUI_essentials", "ComfyUI-Manager"]
        assert locations[1].ref == "main"

    def test_bare_string_config_entry(self):
        locations, rejected = build_locations(
            [], ["https://github.com/ltdrdata/ComfyUI-Manager"]
        )
        assert rejected == []
        assert [loc.name for loc in locations] == ["ComfyUI-Manager"]

    @pytest.mark.parametrize("entry", [42, {"branch": "main"}, ["nested"]])
    def test_malformed_config_entry_is_rejected(self, entry):
        locations, rejected = build_locations([], [entry])
        assert locations == []
        assert len(rejected) == 1


class TestPluginSetReconciler:
    def _locations(self):
        locations, _ = build_locations(parse_plugin_list(PLUGIN_LIST))
        return locations

    def test_clones_every_entry_in_order(self, tmp_path, fake_git):
        installer = MagicMock()
        reconciler = PluginSetReconciler(RepositorySynchronizer(), installer)

        report = reconciler.reconcile(self._locations(), tmp_path / "custom_nodes")

        assert report.ok
        assert [loc.name for loc in report.cloned] == [
            "ComfyUI-Manager",
            "ComfyUI-VideoHelperSuite",
            "ComfyUI_essentials",
        ]
        for name in ("ComfyUI-Manager", "ComfyUI-VideoHelperSuite", "ComfyUI_essentials"):
            assert (tmp_path / "custom_nodes" / name).is_dir()
        installer.apply.assert_not_called()

    def test_second_run_updates(self, tmp_path, fake_git):
        reconciler = PluginSetReconciler(RepositorySynchronizer(), MagicMock())
        reconciler.reconcile(self._locations(), tmp_path)

        report = reconciler.reconcile(self._locations(), tmp_path)

        assert len(report.updated) == 3
        assert len(fake_git.clones) == 3

    def test_installs_declared_requirements(self, tmp_path):
        location = SourceLocation("https://github.com/cubiq/ComfyUI_essentials.git")
        target = tmp_path / location.name
        target.mkdir()
        (target / "requirements.txt").write_text("numba\n")
        synchronizer = MagicMock()
        installer = MagicMock()

        PluginSetReconciler(synchronizer, installer).reconcile([location], tmp_path)

        synchronizer.sync.assert_called_once_with(location, target)
        directives = installer.apply.call_args.args[0]
        assert directives[0].requirements == target / "requirements.txt"

    def test_failure_is_isolated(self, tmp_path, fake_git):
        fake_git.fail_urls.add("https://github.com/Kosinkadink/ComfyUI-VideoHelperSuite")
        reconciler = PluginSetReconciler(RepositorySynchronizer(), MagicMock())

        report = reconciler.reconcile(self._locations(), tmp_path)

        assert not report.ok
        assert [name for name, _ in report.failed] == ["ComfyUI-VideoHelperSuite"]
        assert [loc.name for loc in report.cloned] == ["ComfyUI-Manager", "ComfyUI_essentials"]
        assert report.total == 3

    def test_install_failure_is_isolated(self, tmp_path):
        location = SourceLocation("https://github.com/cubiq/ComfyUI_essentials.git")
        (tmp_path / location.name).mkdir()
        (tmp_path / location.name / "requirements.txt").write_text("broken==0\n")
        installer = MagicMock()
        installer.apply.side_effect = InstallFailure("pip failed")

        report = PluginSetReconciler(MagicMock(), installer).reconcile([location], tmp_path)

        assert report.failed == [(location.name, "pip failed")]

    def test_fail_fast_stops_at_first_failure(self, tmp_path, fake_git):
        fake_git.fail_urls.add("https://github.com/ltdrdata/ComfyUI-Manager.git")
        reconciler = PluginSetReconciler(RepositorySynchronizer(), MagicMock(), fail_fast=True)

        with pytest.raises(SyncFailure):
            reconciler.reconcile(self._locations(), tmp_path)
        assert len(fake_git.commands) == 1

    def test_empty_list_is_noop(self, tmp_path):
        synchronizer = MagicMock()
        report = PluginSetReconciler(synchronizer, MagicMock()).reconcile([], tmp_path)
        assert report.total == 0
        synchronizer.sync.assert_not_called()

    def test_rejected_entries_are_reported(self, tmp_path, fake_git):
        locations, rejected = build_locations(
            ["not a url", "https://github.com/cubiq/ComfyUI_essentials.git"]
        )
        reconciler = PluginSetReconciler(RepositorySynchronizer(), MagicMock())

        report = reconciler.reconcile(locations, tmp_path, rejected)

        assert not report.ok
        assert [name for name, _ in report.failed] == ["not a url"]
        assert [loc.name for loc in report.cloned] == ["ComfyUI_essentials"]
        assert report.total == 2

    def test_rejected_entry_fails_fast(self, tmp_path, fake_git):
        locations, rejected = build_locations(
            ["not a url", "https://github.com/cubiq/ComfyUI_essentials.git"]
        )
        reconciler = PluginSetReconciler(RepositorySynchronizer(), MagicMock(), fail_fast=True)

        with pytest.raises(SyncFailure):
            reconciler.reconcile(locations, tmp_path, rejected)
        assert fake_git.commands == []
