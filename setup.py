from setuptools import setup, find_packages

setup(
    name="codeintel",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests",
        "pyyaml",
        "numpy",
        # Relationship graph
        "networkx>=3.0",
        "watchdog>=3.0",
        "tqdm>=4.60",
    ],
    extras_require={
        # Hosted embeddings (install separately when needed)
        "semantic": [
            "openai>=1.0",
        ],
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "codeintel=codeintel.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Local code-intelligence cache: structure, patterns and similarity search.",
)
