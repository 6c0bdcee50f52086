[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "depinspect"
version = "1.5.20"
description = "Collect dependency trees from software projects across package managers"
requires-python = ">=3.11"
dependencies = []
keywords = [
    "dependencies",
    "dependency-tree",
    "maven",
    "gradle",
    "npm",
    "composer",
    "bundler",
    "cocoapods",
    "poetry",
    "sca",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["depinspect"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
