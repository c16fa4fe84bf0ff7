[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubescan"
version = "0.1.0"
description = "Building blocks for Kubernetes security posture scanning: policy sources, reports, summaries and output"
requires-python = ">=3.10"
keywords = ["kubernetes", "security", "posture", "compliance", "nsa", "mitre", "junit"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "requests>=2.25",
    "termcolor>=1.1",
    "tabulate>=0.8",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.20",
]

[tool.hatch.build.targets.wheel]
packages = ["kubescan"]

[tool.hatch.build.targets.sdist]
include = ["kubescan", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
