import pytest

from depinspect.base import ScanTask
from depinspect.bundler import (
    BundlerInspector,
    GemLockError,
    dependency_graph,
    lex_gem_lock,
    parse_gem_lock,
)

GEM_LOCK = """GIT
  remote: https://git.example.com/demo/widget.git
  revision: abc123
  specs:
    widget (0.1.0)

GEM
  remote: https://rubygems.example.com/
  specs:
    actionpack (5.2.0)
      actionview (= 5.2.0)
      rack (~> 2.0)
    actionview (5.2.0)
      builder (~> 3.1)
    builder (3.2.3)
    rack (2.0.5)

PLATFORMS
  ruby

DEPENDENCIES
  actionpack
  widget!

BUNDLED WITH
   1.16.2
"""


def test_parse_gem_lock_git_section():
    tree = parse_gem_lock(GEM_LOCK)
    git = tree.get("GIT")
    assert git is not None
    assert [c.line for c in git.children] == [
        "remote: https://git.example.com/demo/widget.git",
        "revision: abc123",
        "specs:",
    ]
    assert [c.line for c in git.get("specs:").children] == ["widget (0.1.0)"]


def test_get_missing_path_returns_none():
    tree = parse_gem_lock(GEM_LOCK)
    assert tree.get("GEM", "nothing") is None
    assert tree.get("NOPE") is None


def test_lex_tokens_strings_and_markers():
    tokens = lex_gem_lock("A\n  b\n  c\nD")
    assert [t for t in tokens if isinstance(t, str)] == ["A", "b", "c", "D"]
    assert len(tokens) == 6


def test_lex_bad_indent():
    with pytest.raises(GemLockError):
        lex_gem_lock("a\n    b\n  c")


def test_parse_unexpected_enter():
    with pytest.raises(GemLockError):
        parse_gem_lock("  a\nb")


def test_dependency_graph():
    deps = dependency_graph(GEM_LOCK)
    assert len(deps) == 1
    root = deps[0]
    assert (root.name, root.version) == ("actionpack", "5.2.0")
    assert [(d.name, d.version) for d in root.dependencies] == [
        ("actionview", "5.2.0"),
        ("rack", "2.0.5"),
    ]
    assert [(d.name, d.version) for d in root.dependencies[0].dependencies] == [
        ("builder", "3.2.3")
    ]


def test_dependency_graph_without_specs():
    with pytest.raises(GemLockError):
        dependency_graph("PLATFORMS\n  ruby\n")


def test_dependency_graph_cycle_is_broken():
    text = "GEM\n  specs:\n    r (1)\n      a\n    a (2)\n      b\n    b (3)\n      a\n"
    deps = dependency_graph(text)
    assert len(deps) == 1
    r = deps[0]
    assert r.name == "r"
    a = r.dependencies[0]
    assert a.name == "a"
    b = a.dependencies[0]
    assert b.name == "b"
    assert b.dependencies == []


def test_inspector(tmp_path):
    inspector = BundlerInspector()
    assert not inspector.check_dir(tmp_path)
    (tmp_path / "Gemfile").write_text("source 'x'\n")
    (tmp_path / "Gemfile.lock").write_text(GEM_LOCK)
    assert inspector.check_dir(tmp_path)
    modules = inspector.inspect(ScanTask(str(tmp_path)))
    assert len(modules) == 1
    module = modules[0]
    assert module.package_manager == "bundler"
    assert module.language == "Ruby"
    assert module.package_file == "Gemfile.lock"
    assert module.name == "actionpack"
    assert module.dependencies == dependency_graph(GEM_LOCK)


def test_inspector_missing_lock(tmp_path):
    with pytest.raises(FileNotFoundError):
        BundlerInspector().inspect(ScanTask(str(tmp_path)))