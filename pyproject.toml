[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "doubleratchet"
version = "0.1.0"
description = "Double Ratchet key management for exchanging encrypted messages between two parties."
requires-python = ">=3.10"
dependencies = []
keywords = ["double-ratchet", "forward-secrecy", "future-secrecy", "cryptography", "messaging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = ["pytest", "cryptography"]

[tool.hatch.build.targets.wheel]
packages = ["doubleratchet"]

[tool.pytest.ini_options]
addopts = "-ra"
