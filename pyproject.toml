[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "konjure"
version = "0.1.0"
description = "Expand Kubernetes resource specifications from files, Git, HTTP, Helm, Kustomize, clusters and generated secrets"
requires-python = ">=3.10"
keywords = ["kubernetes", "manifests", "helm", "kustomize", "yaml", "secrets"]
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
    "Topic :: Software Development :: Build Tools",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["konjure"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
