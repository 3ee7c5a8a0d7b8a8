[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tmplzap"
version = "0.1.0"
description = "Compile double-brace templates with block inheritance into plain define-only templates"
requires-python = ">=3.10"
dependencies = []
keywords = ["template", "inheritance", "blocks", "compiler", "preprocessor"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup",
    "Topic :: Software Development :: Pre-processors",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tmplzap"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
