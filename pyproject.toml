[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cometixline"
version = "1.1.2"
description = "Status line generator for Claude Code sessions"
requires-python = ">=3.11"
keywords = ["claude", "statusline", "powerline", "claude-code", "terminal"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Utilities",
]
dependencies = [
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ccline = "cometixline.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["cometixline"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
