#!/usr/bin/env python3
"""
resp-client Setup Script
========================
Allows installation of the resp-client package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="resp-client",
    version="1.0.0",
    packages=find_packages(include=["resp_client", "resp_client.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "resp-client=resp_client.cli:main",
        ],
    },
)
