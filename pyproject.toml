[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ecsarango"
version = "0.1.0"
description = "Unit-of-work session that tracks a local entity world and writes it to an ArangoDB collection"
requires-python = ">=3.11"
dependencies = [
    "httpx",
]
keywords = ["arangodb", "ecs", "entity-component-system", "aql", "unit-of-work"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Database :: Front-Ends",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["ecsarango"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
