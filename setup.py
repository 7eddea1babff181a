# File: clinicalanalysis/setup.py
# Location: clinicalanalysis/clinicalanalysis/setup.py
"""
Setup script for clinicalanalysis.

This file configures how the package is built, installed, and what
dependencies are required.
"""

import os
from setuptools import setup, find_packages

# Load version from version.py without importing the module
version = {}
with open(os.path.join("clinicalanalysis", "version.py")) as f:
    exec(f.read(), version)

# Read the README for the long description
this_dir = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_dir, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="clinicalanalysis",
    version=version["__version__"],
    description="Staged clinical analysis pipelines: phenotype matching, screening and literature search.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["clinicalanalysis", "clinicalanalysis.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "httpx",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "respx",
        ],
    },
    entry_points={"console_scripts": ["clinicalanalysis=clinicalanalysis.cli:main"]},
    include_package_data=True,
    package_data={"clinicalanalysis": ["config.json"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
)
