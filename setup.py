from setuptools import find_packages, setup

# Read requirements from requirements.txt
with open("requirements.txt") as f:
    install_requires = [line.strip() for line in f if line.strip() and not line.startswith("#")]

setup(
    name="chainjournal",
    version="0.1.0",
    description="Append-only personal journal with a hash-linked ledger and hybrid-encrypted entries",
    packages=find_packages(exclude=[".venv", "tests", "docs"]),
    include_package_data=True,
    install_requires=install_requires,
    entry_points={
        "console_scripts": [
            "chainjournal = chainjournal.cli:cli",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
    extras_require={
        "dev": [
            "mypy",
            "flake8",
            "black",
            "isort",
            "pydocstyle",
            "pytest",
            "pytest-cov",
            "pytest-mock",
            "pytest-timeout",
        ],
    },
)
