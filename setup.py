"""
Setup script for compgraph: dependency graph, drift and impact analysis for versioned components
"""

from setuptools import setup, find_packages

setup(
    name="compgraph",
    version="1.0.0",
    description="Dependency graph, drift and impact analysis for versioned workflow components",
    long_description="Builds dependency graphs from versioned component definitions, classifies drift against deployed environments and computes the impact cone of changes",
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src", exclude=["tests*", "docs*", "examples*"]),
    python_requires=">=3.9",
    install_requires=[
        # Core dependencies
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",

        # Graph handling
        "networkx>=3.0",
        "semantic-version>=2.10.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-mock>=3.10.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "flake8>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "compgraph=compgraph.cli:main",
        ],
    },
    include_package_data=True,
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="dependency-graph drift-detection impact-analysis workflow semver",
)
