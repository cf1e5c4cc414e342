[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "contextbus"
version = "0.1.0"
description = "Configurable observation bus: structured logging, tracing, metrics and prerequisite-driven reactions for service events"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = [
    "observability",
    "logging",
    "tracing",
    "metrics",
    "monitoring",
    "events",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["contextbus"]

[tool.hatch.build.targets.sdist]
include = [
    "contextbus",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
