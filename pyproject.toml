[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "headless"
version = "0.1.0"
description = "Building blocks for long-running headless clients: remote configuration, event reporting, self-updating and ordered shutdown."
requires-python = ">=3.11"
dependencies = []
keywords = [
    "headless",
    "client",
    "remote-config",
    "self-update",
    "events",
    "lifecycle",
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
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["headless"]

[tool.pytest.ini_options]
addopts = "-ra"
