# setup.py
from setuptools import setup, find_packages

setup(
    name="graph_engine",
    version="0.1.0",
    description="Interactive Cartesian graph engine: safe expressions, sampling and answer grading",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        "sympy",
        "matplotlib",
        "pillow",
        "numpy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "graph-engine = graph_engine.cli:main",
        ],
    },
)
