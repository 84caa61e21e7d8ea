#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for ZeroCarbon

Allocation-aware emission aggregation engine and its maintenance CLI.
"""

from pathlib import Path

from setuptools import setup, find_packages

VERSION = "1.0.0"

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")
else:
    long_description = "ZeroCarbon - allocation-aware emission aggregation engine"

setup(
    name="zerocarbon",
    version=VERSION,
    description="Allocation-aware greenhouse-gas emission aggregation engine",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    packages=find_packages(include=["zerocarbon", "zerocarbon.*"]),
    install_requires=[
        "pydantic>=2.0",
        "prometheus-client>=0.17",
        "typer>=0.9",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "zerocarbon=zerocarbon.cli.main:main",
        ],
    },
)
