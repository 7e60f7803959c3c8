[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "modeldb"
version = "0.1.0"
description = "An embedded key-value database for typed models with primary and secondary keys, transactions, migrations and change watching."
requires-python = ">=3.10"
keywords = ["database", "embedded", "key-value", "transactions", "secondary-index", "watch"]
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
    "Topic :: Database :: Database Engines/Servers",
]
dependencies = [
    "sortedcontainers",
    "msgpack",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["modeldb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
