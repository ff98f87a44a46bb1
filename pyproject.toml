[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "robovision"
version = "0.1.0"
description = "Simulated mobile-robot arena with a small computer-vision toolkit for tracking coloured robot markers."
requires-python = ">=3.10"
keywords = [
    "computer vision",
    "robot",
    "simulation",
    "image processing",
    "morphology",
    "labelling",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
    "numpy",
]

[project.scripts]
robovision = "robovision.tracker:main"

[tool.hatch.build.targets.wheel]
packages = ["robovision"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
