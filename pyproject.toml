[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "milli"
version = "0.1.0"
description = "Storage layer, binary codecs and inspection tools for an LMDB-backed search index"
requires-python = ">=3.10"
keywords = ["search", "index", "lmdb", "roaring-bitmap", "facets", "inverted-index"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Text Processing :: Indexing",
]
dependencies = [
    "lmdb",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
milli-infos = "milli.infos:main"
milli-helpers = "milli.helpers:main"

[tool.hatch.build.targets.wheel]
packages = ["milli"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
