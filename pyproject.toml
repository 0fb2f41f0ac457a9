[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gander"
version = "0.1.0"
description = "Building blocks for SQL database migrations: annotated SQL parsing, dialect queries, version resolution and session locking"
requires-python = ">=3.10"
dependencies = []
keywords = ["migrations", "sql", "database", "schema", "dialect"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gander"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
