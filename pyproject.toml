[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "y86tools"
version = "0.1.0"
description = "Y86-64 instruction set simulator, assembler and HCL code generator"
requires-python = ">=3.10"
dependencies = []
keywords = ["y86", "y86-64", "assembler", "simulator", "hcl", "architecture"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Assemblers",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
yis = "y86tools.yis:main"
yas = "y86tools.assembler:main"

[tool.hatch.build.targets.wheel]
packages = ["y86tools"]

[tool.pytest.ini_options]
addopts = "-ra"
