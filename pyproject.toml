[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pcidevwebhook"
version = "0.1.0"
description = "Admission webhook that validates and mutates PCI, USB and vGPU device objects and the virtual machines that use them"
requires-python = ">=3.10"
dependencies = []
keywords = ["admission", "webhook", "pci", "usb", "vgpu", "sriov", "passthrough", "virtual-machine"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pcidevwebhook = "pcidevwebhook.server:main"

[tool.hatch.build.targets.wheel]
packages = ["pcidevwebhook"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
