[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "browsedaemon"
version = "0.1.0"
description = "State, logging and request handling core for a browser automation daemon"
requires-python = ">=3.10"
keywords = ["browser", "automation", "daemon", "testing", "devtools", "visual-diff"]
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
    "Topic :: Software Development :: Testing",
    "Typing :: Typed",
]
dependencies = [
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["browsedaemon"]

[tool.pytest.ini_options]
addopts = "-ra"
