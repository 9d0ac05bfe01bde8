[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "respcache"
version = "0.1.0"
description = "HTTP response caching middleware for WSGI applications, with memory, Redis and two-level stores"
requires-python = ">=3.10"
dependencies = [
    "redis",
]
keywords = ["wsgi", "middleware", "cache", "http", "redis", "lru", "lfu"]
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
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
respcache-demo = "respcache.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["respcache"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
