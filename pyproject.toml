[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pocketrace"
version = "0.1.0"
description = "Core pieces of a handheld console emulator: Z80 register state, cartridge flash and save files, palettes and scanline video rendering"
requires-python = ">=3.10"
dependencies = []
keywords = ["emulator", "z80", "flash", "ngf", "palette", "scanline", "handheld"]
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
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pocketrace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
