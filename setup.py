"""
Setup script for gllvm_ordination package
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding='utf-8')
else:
    long_description = "Ordination and biplot workflow for GLLVMs fitted to species presence-absence data"

setup(
    name="gllvm_ordination",
    version="0.1.0",
    description="Ordination plots, biplot scaling and model comparison for generalized linear latent variable models",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="GLLVM Ordination Project",
    packages=find_packages(include=["gllvm_ordination", "gllvm_ordination.*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20",
        "pandas>=1.3",
        "matplotlib>=3.4",
        "scipy>=1.7",
        "seaborn>=0.11",
        "scikit-learn>=1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "gllvm-ordination=gllvm_ordination.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    keywords="ecology ordination biplot GLLVM latent variables",
)
