[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gpiouapi"
version = "0.1.0"
description = "Linux GPIO character device UAPI structures with binary encoding, and a line event watcher"
requires-python = ">=3.10"
dependencies = []
keywords = ["gpio", "linux", "uapi", "character-device", "struct"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gpiouapi"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
