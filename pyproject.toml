[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "reconwatch"
version = "0.1.0"
description = "Run shell commands on a schedule, watch their output for changes and send Discord alerts"
requires-python = ">=3.10"
keywords = ["monitoring", "scheduler", "diff", "discord", "webhook", "change-detection"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
reconwatch = "reconwatch.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["reconwatch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
