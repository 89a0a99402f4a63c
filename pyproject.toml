[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pkmntools"
version = "0.1.0"
description = "Build helpers for Game Boy ROM projects: tile graphics cleanup, .pic compression, include scanning and VC patch generation"
requires-python = ">=3.10"
dependencies = []
keywords = ["game boy", "rom", "2bpp", "graphics", "compression", "patch", "build"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pkmn-gfx = "pkmntools.gfx:main"
pkmncompress = "pkmntools.pkmncompress:main"
scan-includes = "pkmntools.scan_includes:main"
make-patch = "pkmntools.make_patch:main"

[tool.hatch.build.targets.wheel]
packages = ["pkmntools"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
