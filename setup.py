"""
Setup configuration for optionscan

Install in development mode:
    pip install -e .

Install with test dependencies:
    pip install -e .[dev]
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / 'README.md'
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding='utf-8')

setup(
    name="optionscan",
    version="1.0.0",
    description="Black-Scholes option quotes and covered-call / LEAPS opportunity screening",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="optionscan Team",
    license="MIT",

    packages=find_packages(exclude=["tests", "tests.*"]),

    # Core dependencies
    install_requires=[
        "numpy>=1.24",
        "pandas>=2.0",
        "scipy>=1.10",
        "httpx>=0.24",
        "click>=8.0",
        "rich>=13.0",
        "PyYAML>=6.0",
    ],

    # Development dependencies
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.0.0",
        ],
    },

    # Python version requirement
    python_requires=">=3.9",

    # Package classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Investment",
    ],

    keywords="options black-scholes greeks covered-calls leaps screener finance",

    entry_points={
        "console_scripts": [
            "optionscan=optionscan.cli.cli:main",
        ],
    },

    zip_safe=False,
)
