"""Setup script for the Escrow Marketplace lifecycle engine."""

from setuptools import setup, find_packages
from pathlib import Path

readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="escrow-marketplace",
    version="0.1.0",
    description="Project, application and escrow payment lifecycle for a freelance marketplace",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "jsonschema>=4.17.0",
        "filelock>=3.12.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "api": [
            "flask>=2.3.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "flask>=2.3.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "escrow-market=escrow_marketplace.cli:main",
            "escrow-market-api=escrow_marketplace.api.routes:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial",
    ],
    keywords=[
        "marketplace",
        "freelance",
        "escrow",
        "payments",
    ],
)
