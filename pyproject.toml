[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "rgbkit"
version = "0.1.0"
description = "Game Boy development toolkit: ROM header fixing, cartridge types, assembler symbols and diagnostics"
requires-python = ">=3.10"
dependencies = []
keywords = ["game boy", "gbz80", "rom", "header", "checksum", "assembler", "mbc"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Assemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rgbkit-fix = "rgbkit.fixcli:main"

[tool.setuptools.packages.find]
include = ["rgbkit*"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
