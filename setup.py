"""Setup configuration for the komichi PyPI package."""

import os
from setuptools import setup, find_packages

# Read the README for PyPI
with open("README_PYPI.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read version from package
version_file = os.path.join(os.path.dirname(__file__), "komichi", "__init__.py")
with open(version_file) as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break
    else:
        version = "0.1.0"

setup(
    name="komichi",
    version=version,
    description="Explore Bluesky posts by content similarity",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet",
        "Topic :: Text Processing :: Indexing",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pyyaml>=6.0",
        "click>=8.0",
        "rich>=13.0",
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "aiohttp>=3.8",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "coverage>=6.0",
            "ruff>=0.1",
            "mypy>=1.0",
        ],
        "embeddings": [
            "sentence-transformers>=2.2",
        ],
        "all": [
            "komichi[embeddings]",
        ],
    },
    entry_points={
        "console_scripts": [
            "komichi=komichi.cli:main",
        ],
    },
    keywords=[
        "bluesky",
        "atproto",
        "similarity-search",
        "simhash",
        "embeddings",
        "social-graph",
    ],
)
