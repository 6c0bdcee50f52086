import pytest

from depinspect.maven_base import (
    PARSE_POM_FAILED,
    ArtifactNotFoundError,
    Coordinate,
    InvalidCoordinateError,
)
from depinspect.maven_repo import LocalRepo
from depinspect.semerr import SemErrInstance, error_is

POM = "<project><groupId>org.example</groupId><artifactId>demo</artifactId><version>1.0</version></project>"


def _place(base, content):
    d = base / "org" / "example" / "demo" / "1.0"
    d.mkdir(parents=True)
    (d / "demo-1.0.pom").write_text(content)


def test_fetch_found(tmp_path):
    _place(tmp_path, POM)
    project = LocalRepo(tmp_path).fetch(Coordinate("org.example", "demo", "1.0"))
    assert project.artifact_id == "demo"
    assert project.group_id == "org.example"


def test_fetch_missing(tmp_path):
    with pytest.raises(ArtifactNotFoundError):
        LocalRepo(tmp_path).fetch(Coordinate("org.example", "demo", "1.0"))


def test_fetch_incomplete(tmp_path):
    with pytest.raises(InvalidCoordinateError):
        LocalRepo(tmp_path).fetch(Coordinate("org.example", "demo", ""))
    with pytest.raises(InvalidCoordinateError):
        LocalRepo(tmp_path).fetch(Coordinate("org.example", "demo", "[1,2)"))


def test_fetch_bad_xml(tmp_path):
    _place(tmp_path, "<project><broken></project>")
    with pytest.raises(SemErrInstance) as info:
        LocalRepo(tmp_path).fetch(Coordinate("org.example", "demo", "1.0"))
    assert error_is(info.value, PARSE_POM_FAILED)
    assert str(info.value).startswith("Parse pom failed.: ")


def test_fetch_directory(tmp_path):
    (tmp_path / "org" / "example" / "demo" / "1.0" / "demo-1.0.pom").mkdir(parents=True)
    with pytest.raises(IsADirectoryError):
        LocalRepo(tmp_path).fetch(Coordinate("org.example", "demo", "1.0"))


def test_str(tmp_path):
    assert str(LocalRepo(tmp_path)) == f"LocalRepo[{tmp_path}]"