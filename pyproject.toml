[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "melisai"
version = "0.2.0"
description = "Linux performance report model with USE metrics, anomaly detection, health scoring, tuning recommendations and analysis prompts"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "performance",
    "monitoring",
    "use-method",
    "linux",
    "procfs",
    "anomaly-detection",
    "flamegraph",
    "sysctl",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["melisai"]

[tool.hatch.build.targets.sdist]
include = ["melisai", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
