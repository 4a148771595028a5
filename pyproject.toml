[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "exhy"
version = "0.1.0"
description = "Socket addresses, a chunked byte buffer, typed configuration and a small threaded TCP server"
requires-python = ">=3.10"
keywords = ["socket", "tcp", "server", "bytearray", "varint", "zigzag", "configuration", "yaml"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pyyaml",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
exhy-echo-server = "exhy.echo_server:main"

[tool.hatch.build.targets.wheel]
packages = ["exhy"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
