[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lowws"
version = "0.1.0"
description = "Low-level WebSocket (RFC 6455) framing, handshake and upgrade toolkit"
requires-python = ">=3.10"
dependencies = []
keywords = ["websocket", "rfc6455", "handshake", "framing", "protocol"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
lowws-report = "lowws.report:main"

[tool.hatch.build.targets.wheel]
packages = ["lowws"]

[tool.hatch.build.targets.sdist]
include = ["lowws", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
