[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nacos_sdk"
version = "0.1.0"
description = "Client library for Nacos configuration management and service discovery"
requires-python = ">=3.10"
dependencies = []
keywords = ["nacos", "service-discovery", "configuration", "naming", "registry"]
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
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nacos_sdk"]

[tool.pytest.ini_options]
addopts = "-ra"
