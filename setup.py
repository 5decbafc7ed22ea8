#!/usr/bin/env python3
"""
Setup script for the Log Rate Generator
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

setup(
    name="log-rate-generator",
    version="1.0.0",
    description="Synthetic log traffic generator for load-testing log pipelines",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="E4Itraining",
    python_requires=">=3.8",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["log_generator"],
    install_requires=[
        "elasticsearch>=8.0.0,<9.0.0",
        "pyyaml>=6.0",
        "psutil>=5.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0,<9",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "log-generator=log_generator:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Logging",
        "Topic :: Software Development :: Testing :: Traffic Generation",
    ],
    keywords="logging, load-testing, elasticsearch, log-pipeline, generator",
)
