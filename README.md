# depinspect

`depinspect` looks at a project directory and builds dependency trees from the
manifests and lock files of common package managers. Each result is a
`Module` (from `depinspect.base`) holding a tree of `Dependency` records; both
turn into plain dictionaries with `to_dict()`.

## Supported ecosystems

| Package manager | Inspector                               | Files read                                   |
|-----------------|-----------------------------------------|----------------------------------------------|
| Maven           | `depinspect.maven.MavenInspector`       | `pom.xml`, `mvn` dependency graphs, `~/.m2`  |
| Gradle          | `depinspect.gradle.GradleInspector`     | `gradlew` / `gradle` output, `build.gradle*` |
| npm             | `depinspect.npm.NpmInspector`           | `package.json`, `package-lock.json`          |
| Composer        | `depinspect.composer.ComposerInspector` | `composer.json`, `composer.lock`, `vendor/`  |
| Bundler         | `depinspect.bundler.BundlerInspector`   | `Gemfile`, `Gemfile.lock`                    |
| CocoaPods       | `depinspect.cocoapods.PodInspector`     | `Podfile.lock`                               |
| Poetry          | `depinspect.poetry.PoetryInspector`     | `pyproject.toml`                             |
| pip / imports   | `depinspect.pyimports.PythonInspector`  | `requirements*`, `*.py` import statements    |

Some inspectors run the matching tool when it is installed:

* Maven runs `mvn` with the depgraph plugin and reads the
  `dependency-graph.json` files it writes; independently it reads every
  `pom.xml` of the project, resolving parents and dependencies through the
  local repository and the remote repositories named in the Maven
  `settings.xml` (Maven Central is always included). Setting the `NO_MVN`
  environment variable skips the `mvn` call.
* Gradle runs the project's `gradlew` (or `gradle` on `PATH`) to list the
  `runtimeClasspath` of every sub-project. When that yields nothing, it reads
  literal coordinates from `build.gradle` and `build.gradle.kts` files instead.
* Composer runs `composer` only when `composer.lock` is missing, to generate it.

## Installation

```
pip install depinspect
```

Python 3.11 or newer is required. There are no runtime dependencies.

## Usage

```python
from depinspect.base import ScanTask
from depinspect.npm import NpmInspector

task = ScanTask(project_dir="path/to/project")
inspector = NpmInspector()
if inspector.check_dir(task.project_dir):
    for module in inspector.inspect(task):
        print(module.name, module.version)
        for dep in module.dependencies:
            print("  ", dep.name, dep.version)
```

Every inspector is an `Inspector` subclass with:

* `check_dir(directory)`: whether the directory looks like a project for that
  package manager;
* `inspect(task)`: a list of `Module` objects;
* `package_manager_type`: a `PackageManagerType` value.

Warnings meant for the user (such as a build tool that does not run) are
passed to `ScanTask.warn`, which logs them and keeps them in
`ScanTask.warnings`.

The parsers work on their own too:

```python
from depinspect.bundler import dependency_graph
from depinspect.cocoapods import dependencies_from_pod_lock
from depinspect.gradle_parse import parse_gradle_groovy
from depinspect.pom import resolve_property

with open("Gemfile.lock") as fh:
    tree = dependency_graph(fh.read())

resolve_property({"a": "1", "b": "2${a}"}, "b")   # "21"
```

Smaller helpers live in `depinspect.textio` (`Dos2UnixWriter`,
`Unix2DosWriter`, `SuffixBuffer`), `depinspect.fsutil` and
`depinspect.semerr` (`SemErr`, `error_is`).

## Errors

Failures that belong to an ecosystem are raised as `InspectorError` (from
`depinspect.base`); `MavenInspector` raises one when `mvn` is unavailable and
no module could be found from the pom files. `unwrap_to_inspector_error`
finds an `InspectorError` in a chain of exceptions. Parsers raise their own
errors, such as `GemLockError`, `PoetryError` and the `Composer*Error`
classes.

## What it does not do

* There is no command-line program; the package is a library.
* `PackageManagerType` has `GO_MOD` and `YARN` members, but there are no
  inspectors for Go modules or Yarn.
* Nothing walks a tree of directories choosing inspectors, and results are
  not sent anywhere; callers pick the inspector and use the returned modules.

## Running the tests

```
pip install -e ".[test]"
pytest
```