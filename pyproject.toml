[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cloudconnect"
version = "1.0.0"
description = "Device-side services for a cloud connector: local request protocol and server, device requests, data point uploads and remote configuration state"
requires-python = ">=3.10"
dependencies = []
keywords = ["cloud", "connector", "device", "rci", "datapoints", "device-request", "iot"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cloudconnect"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
