[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "perunckb"
version = "0.1.0"
description = "Perun state-channel wallets, participant addresses and transaction balancing for the CKB blockchain"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "ckb",
    "nervos",
    "perun",
    "state-channels",
    "payment-channels",
    "secp256k1",
    "molecule",
    "blockchain",
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["perunckb"]

[tool.hatch.build.targets.sdist]
include = [
    "perunckb",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
strict = true
