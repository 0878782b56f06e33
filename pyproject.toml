[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nemukit"
version = "0.1.0"
description = "Emulator support toolkit: bit helpers, instruction pattern decoding, a GDB remote protocol client, QEMU differential testing and Kconfig-style macro expansion"
requires-python = ">=3.10"
keywords = ["emulator", "gdb", "remote-protocol", "difftest", "qemu", "kconfig", "instruction-decoding"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Debuggers",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nemukit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
