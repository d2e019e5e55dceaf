[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tpmattest"
version = "0.1.0"
description = "TPM attestation building blocks: typed results, a TPM access interface and attestation key certificate renewal."
requires-python = ">=3.10"
keywords = ["tpm", "tpm2", "attestation", "certificate", "security"]
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
    "Topic :: Security",
    "Typing :: Typed",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "cryptography",
]

[tool.hatch.build.targets.wheel]
packages = ["tpmattest"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
