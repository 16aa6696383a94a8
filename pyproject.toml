[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fpgaprog"
version = "0.1.0"
description = "FPGA configuration file parsers, a JTAG TAP driver and a Lattice FPGA programmer"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "fpga",
    "jtag",
    "lattice",
    "bitstream",
    "jedec",
    "intel-hex",
    "mcs",
    "machxo2",
    "machxo3",
    "machxo3d",
    "ecp5",
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
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Scientific/Engineering :: Electronic Design Automation (EDA)",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fpgaprog"]

[tool.hatch.build.targets.sdist]
include = ["fpgaprog", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
