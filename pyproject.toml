[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gatewaycheck"
version = "0.1.0"
description = "Building blocks for Gateway API conformance checks: options, HTTP round trips against an echo backend, manifest preparation and readiness polling."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "gateway-api",
    "kubernetes",
    "conformance",
    "httproute",
    "testing",
]
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
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gatewaycheck"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
