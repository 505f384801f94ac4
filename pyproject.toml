[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imagepolicy"
version = "0.1.0"
description = "Certification policy checks for container images: labels, layers, users, licenses, packages, modified files, base image and tags."
requires-python = ">=3.10"
dependencies = []
keywords = ["container", "image", "policy", "certification", "oci", "rpm"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["imagepolicy"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
