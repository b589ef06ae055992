[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "localcurrency"
version = "1.0.0"
description = "Primitives and registry logic for community currencies: geohash-bucketed meetup locations, fixed-point balances, ceremony proofs and personhood ratings."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "community currency",
    "fixed point",
    "geohash",
    "base58",
    "proof of personhood",
    "universal basic income",
]
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["localcurrency"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
