"""Setup configuration for prcycle"""

from setuptools import setup, find_packages

setup(
    name="pr-cycle-time-analyzer",
    version="0.1.0",
    description=(
        "Pull request timelines, business-hour cycle-time metrics and "
        "workflow validation from GitHub pull request snapshots."
    ),
    author="PR Cycle Time Analyzer Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "pr-cycle-time=prcycle.main:main",
        ],
    },
)
