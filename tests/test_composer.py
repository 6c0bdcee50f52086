import json
import subprocess
from unittest import mock

import pytest

from depinspect.base import ScanTask
from depinspect.composer import (
    ComposerInspector,
    ComposerInstallError,
    ComposerManifest,
    ComposerPackage,
    ComposerResolveError,
    ComposerVersionCheckError,
    build_dep_tree,
    check_composer_version,
    composer_install,
    parse_composer_lock,
    parse_composer_manifest,
    read_manifest,
    vendor_scan,
)


def _completed(returncode, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_parse_manifest():
    data = json.dumps(
        {"name": "acme/app", "version": "1.0.0", "require": {"php": ">=7.4", "monolog/monolog": "^2.0"}}
    ).encode()
    manifest = parse_composer_manifest(data)
    assert manifest == ComposerManifest("acme/app", "1.0.0", {"php": ">=7.4", "monolog/monolog": "^2.0"})


def test_parse_manifest_invalid_json():
    with pytest.raises(ValueError):
        parse_composer_manifest(b"{not json")


def test_parse_lock_skips_incomplete_packages():
    data = json.dumps(
        {
            "packages": [
                {"name": "a/a", "version": "1.2.3", "require": {"b/b": "^1"}},
                {"name": "c/c"},
                {"version": "2.0"},
            ]
        }
    )
    assert parse_composer_lock(data) == [ComposerPackage("a/a", "1.2.3", ["b/b"])]


def test_parse_lock_without_packages():
    assert parse_composer_lock(b"{}") == []


def test_build_dep_tree_platform_requirements():
    assert build_dep_tree({}, "php", ">=7.4") is None
    assert build_dep_tree({}, "ext-json", "*") is None


def test_build_dep_tree_unlocked_keeps_constraint():
    node = build_dep_tree({}, "x/y", "^3.1")
    assert (node.name, node.version, node.dependencies) == ("x/y", "^3.1", [])


def test_build_dep_tree_uses_locked_version_and_children():
    lock = {
        "a/a": ComposerPackage("a/a", "1.0", ["b/b"]),
        "b/b": ComposerPackage("b/b", "2.0", ["a/a"]),
    }
    node = build_dep_tree(lock, "a/a", "^1")
    assert node.version == "1.0"
    assert [d.name for d in node.dependencies] == ["b/b"]
    assert node.dependencies[0].version == "2.0"
    assert node.dependencies[0].dependencies == []


def test_build_dep_tree_depth_is_limited():
    names = [f"p/{i}" for i in range(8)]
    lock = {n: ComposerPackage(n, "1", [names[i + 1]] if i + 1 < len(names) else []) for i, n in enumerate(names)}
    node = build_dep_tree(lock, names[0], "")
    depth = 0
    while node is not None:
        depth += 1
        node = node.dependencies[0] if node.dependencies else None
    assert depth == 4
    assert depth < len(names)


def test_vendor_scan(tmp_path):
    pkg_dir = tmp_path / "vendor" / "x" / "y"
    pkg_dir.mkdir(parents=True)
    (pkg_dir / "composer.json").write_text(
        json.dumps({"name": "x/y", "version": "0.1", "require": {"z/z": "*"}})
    )
    assert vendor_scan(tmp_path / "vendor") == [ComposerPackage("x/y", "0.1", ["z/z"])]


def test_vendor_scan_missing_dir(tmp_path):
    assert vendor_scan(tmp_path / "nope") == []


def test_read_manifest_missing(tmp_path):
    with pytest.raises(OSError):
        read_manifest(tmp_path / "composer.json")


def test_inspector(tmp_path):
    (tmp_path / "composer.json").write_text(
        json.dumps({"name": "acme/app", "require": {"php": "^8", "a/a": "^1"}})
    )
    (tmp_path / "composer.lock").write_text(
        json.dumps({"packages": [{"name": "a/a", "version": "1.4.0", "require": {"b/b": "^2"}}]})
    )
    inspector = ComposerInspector()
    assert inspector.check_dir(tmp_path)
    [module] = inspector.inspect(ScanTask(str(tmp_path)))
    assert module.name == "acme/app"
    assert module.package_manager == "composer"
    assert [(d.name, d.version) for d in module.dependencies] == [("a/a", "1.4.0")]
    assert [(d.name, d.version) for d in module.dependencies[0].dependencies] == [("b/b", "")]


def test_inspector_check_dir_empty(tmp_path):
    assert not ComposerInspector().check_dir(tmp_path)


def test_composer_install_success(tmp_path):
    with mock.patch("subprocess.run", return_value=_completed(0)) as run:
        assert composer_install(tmp_path) is None
    assert run.call_args.kwargs["cwd"] == tmp_path


def test_composer_install_exit_two_is_resolve_error(tmp_path):
    with mock.patch("subprocess.run", return_value=_completed(2)):
        with pytest.raises(ComposerResolveError) as info:
            composer_install(tmp_path)
    assert not isinstance(info.value, ComposerInstallError)
    assert str(info.value) == "PHP composer resolve failed"


def test_composer_install_unresolved_requirements_message(tmp_path):
    stderr = b"Your requirements could not be resolved to an installable set"
    with mock.patch("subprocess.run", return_value=_completed(1, stderr=stderr)):
        with pytest.raises(ComposerInstallError) as info:
            composer_install(tmp_path)
    assert info.value.code == 1
    assert str(info.value) == "PHP composer resolve failed"


def test_composer_install_other_failure(tmp_path):
    with mock.patch("subprocess.run", return_value=_completed(1, stderr=b"boom")):
        with pytest.raises(ComposerResolveError) as info:
            composer_install(tmp_path)
    assert isinstance(info.value, ComposerInstallError)
    assert info.value.stderr_prefix == b"boom"
    assert "boom" in str(info.value)


def test_composer_install_missing_binary(tmp_path):
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("composer")):
        with pytest.raises(ComposerInstallError) as info:
            composer_install(tmp_path)
    assert info.value.code == -1


def test_check_composer_version():
    out = b"Composer version 2.3.5 2022-04-13 16:43:00"
    with mock.patch("subprocess.run", return_value=_completed(0, stdout=out)):
        assert check_composer_version() == "2.3.5"


def test_check_composer_version_no_match():
    with mock.patch("subprocess.run", return_value=_completed(0, stdout=b"nothing")):
        with pytest.raises(ComposerVersionCheckError) as info:
            check_composer_version()
    assert str(info.value) == "ComposerVersionCheckFail: Version pattern not match"


def test_check_composer_version_missing_binary():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("composer")):
        with pytest.raises(ComposerVersionCheckError):
            check_composer_version()