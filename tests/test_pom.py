import os

import pytest

from depinspect.maven_base import Coordinate
from depinspect.pom import (
    PomBuilder,
    PomFile,
    PomProject,
    inspect_module,
    parse_pom,
    read_pom,
    resolve_property,
)

PARENT_XML = """<?xml version="1.0"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <groupId>org.example</groupId>
  <artifactId>parent</artifactId>
  <version>1.0</version>
  <properties>
    <lib.version>2.3</lib.version>
  </properties>
  <dependencyManagement>
    <dependencies>
      <dependency>
        <groupId>com.acme</groupId>
        <artifactId>managed</artifactId>
        <version>4.5</version>
      </dependency>
    </dependencies>
  </dependencyManagement>
</project>
"""

CHILD_XML = """<project xmlns="http://maven.apache.org/POM/4.0.0">
  <parent>
    <groupId>org.example</groupId>
    <artifactId>parent</artifactId>
    <version>1.0</version>
  </parent>
  <artifactId>child</artifactId>
  <dependencies>
    <dependency>
      <groupId>com.acme</groupId>
      <artifactId>lib</artifactId>
      <version>${lib.version}</version>
    </dependency>
    <dependency>
      <groupId>com.acme</groupId>
      <artifactId>managed</artifactId>
    </dependency>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>4.13</version>
      <scope>test</scope>
    </dependency>
    <dependency>
      <groupId>com.acme</groupId>
      <artifactId>opt</artifactId>
      <version>1.0</version>
      <optional>true</optional>
    </dependency>
    <dependency>
      <groupId>${bad}</groupId>
      <artifactId>x</artifactId>
      <version>1</version>
    </dependency>
  </dependencies>
</project>
"""


def test_resolve_property():
    m = {"a": "1", "b": "2${a}", "c": "foo${b}${d}"}
    assert resolve_property(m, "c") == "foo21${d}"


def test_resolve_property_cycle_and_missing():
    m = {"x": "${y}", "y": "${x}"}
    assert resolve_property(m, "x") == "${x}"
    assert resolve_property(m, "missing") == "${missing}"


def test_parse_pom_fields():
    p = parse_pom(CHILD_XML)
    assert p.artifact_id == "child"
    assert p.parent.group_id == "org.example"
    assert p.parent.version == "1.0"
    assert [d.artifact_id for d in p.dependencies] == ["lib", "managed", "junit", "opt", "x"]
    assert p.dependencies[2].scope == "test"
    assert p.dependencies[3].optional == "true"


def test_parse_pom_properties_and_management():
    p = parse_pom(PARENT_XML.encode())
    assert p.properties == {"lib.version": "2.3"}
    assert p.dependency_management[0].artifact_id == "managed"


def test_parse_pom_errors():
    with pytest.raises(ValueError):
        parse_pom("<project><unclosed></project>")
    with pytest.raises(ValueError):
        parse_pom("<settings/>")


def test_pom_file_property():
    pf = PomFile(property_map={"v": "1.2"})
    assert pf.property("x-${v}-${w}") == "x-1.2-${w}"


def test_builder_requires_project():
    with pytest.raises(TypeError):
        PomBuilder(None)


def test_build_with_parent():
    parent = PomBuilder(parse_pom(PARENT_XML)).build()
    assert parent.coordinate == Coordinate("org.example", "parent", "1.0")
    assert parent.dependency_management == {Coordinate("com.acme", "managed"): "4.5"}

    child = PomBuilder(parse_pom(CHILD_XML), parent_pom=parent).build()
    assert child.coordinate == Coordinate("org.example", "child", "1.0")
    assert child.property("${lib.version}") == "2.3"
    assert {d.coordinate for d in child.dependencies} == {
        Coordinate("com.acme", "lib", "2.3"),
        Coordinate("com.acme", "managed", "4.5"),
    }


def test_build_inherits_parent_dependencies():
    parent_project = PomProject(group_id="g", artifact_id="p", version="1")
    parent_project.dependencies = parse_pom(CHILD_XML).dependencies[:1]
    parent_project.properties = {"lib.version": "9"}
    parent = PomBuilder(parent_project).build()
    child = PomBuilder(PomProject(group_id="g", artifact_id="c", version="1"), parent_pom=parent).build()
    assert [d.coordinate for d in child.dependencies] == [Coordinate("com.acme", "lib", "9")]


def test_inspect_module(tmp_path):
    (tmp_path / "pom.xml").write_text(
        "<project><groupId>g</groupId><artifactId>root</artifactId><version>1</version>"
        "<modules><module>child-a</module><module>../outside</module></modules></project>"
    )
    (tmp_path / "child-a").mkdir()
    (tmp_path / "child-a" / "pom.xml").write_text(CHILD_XML)
    result = inspect_module(str(tmp_path))
    child_path = os.path.normpath(os.path.join(str(tmp_path), "child-a"))
    assert set(result) == {str(tmp_path), child_path}
    assert result[child_path].project.artifact_id == "child"
    assert result[child_path].path == child_path


def test_read_pom(tmp_path):
    path = tmp_path / "pom.xml"
    path.write_text(PARENT_XML)
    assert read_pom(path).artifact_id == "parent"