[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ductoflags"
version = "0.1.0"
description = "Feature flags from JSON or YAML files and HTTP endpoints, with live reloading, targeting rules and percentage rollouts"
requires-python = ">=3.10"
keywords = ["feature-flags", "feature-toggles", "rollout", "openfeature", "configuration"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pyyaml",
    "watchdog",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ducto-flags = "ductoflags.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ductoflags"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
