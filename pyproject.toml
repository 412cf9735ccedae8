[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "relplz"
version = "0.1.0"
description = "Release tooling for Cargo workspaces: next-version calculation from conventional commits, changelogs, manifests, registry lookup and git helpers"
requires-python = ">=3.11"
dependencies = [
    "tomlkit",
]
keywords = [
    "release",
    "semver",
    "changelog",
    "conventional-commits",
    "cargo",
    "git",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: Software Development :: Version Control :: Git",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["relplz"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
