[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "snailnet"
version = "1.0.0"
description = "A TCP load balancer with a worker pool, and a collection of small socket servers and clients"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "load-balancer",
    "proxy",
    "sockets",
    "selectors",
    "worker-pool",
    "tcp",
    "http-parser",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet :: Proxy Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
snailnet = "snailnet.cli:main"
snailnet-httpparser = "snailnet.httpparser:main"
snailnet-unblock = "snailnet.unblock:main"

[tool.hatch.build.targets.wheel]
packages = ["snailnet"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
