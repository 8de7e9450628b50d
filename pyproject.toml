[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wbipam"
version = "0.1.0"
description = "IP address helpers, node slice allocation and stale address cleanup helpers for cluster IPAM"
requires-python = ">=3.10"
dependencies = []
keywords = ["ipam", "ip", "cidr", "subnet", "kubernetes", "cni", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
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
packages = ["wbipam"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
