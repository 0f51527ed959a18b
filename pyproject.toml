[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mallcore"
version = "0.1.0"
description = "Category, inventory and order services for an online shop, with in-memory repositories and framework-neutral handlers"
requires-python = ">=3.10"
dependencies = []
keywords = ["e-commerce", "inventory", "orders", "categories", "shop", "stock"]
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
    "Topic :: Office/Business",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mallcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
