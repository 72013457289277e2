from setuptools import setup, find_packages

setup(
    name="vaultkeep",
    version="0.1.0",
    description="Vaultkeep - session memory lifecycle engine: retention, archives, ranking and restore",
    packages=find_packages(include=["Vaultkeep", "Vaultkeep.*"]),
    python_requires=">=3.10",
    install_requires=[
        # Schemas
        "pydantic>=2.0.0",

        # Configuration
        "PyYAML>=6.0",
        "python-dotenv>=0.19.0",

        # Processing
        "psutil>=5.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
        ],
    },
)
