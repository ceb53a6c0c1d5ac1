"""
Setup configuration for ecs-autoscaler - idempotent ECS service auto-scaling
"""
from setuptools import setup, find_packages
from pathlib import Path

# README for the long description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Runtime requirements
requirements = [
    line.strip()
    for line in (this_directory / "requirements.txt").read_text().splitlines()
    if line.strip() and not line.startswith("#")
]

# Version
version = "0.1.0"

setup(
    name="ecs-autoscaler",
    version=version,
    author="ecs-autoscaler Contributors",
    description="Register and tear down ECS service auto-scaling and CloudWatch alarms, idempotently",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Packages
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,

    # Requirements
    python_requires=">=3.8",
    install_requires=requirements,

    # Optional dependencies
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-mock>=3.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "pytest-mock>=3.0",
            "black>=22.0",
            "isort>=5.0",
            "ruff>=0.0.280",
        ],
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "ecs-autoscaler=ecs_autoscaler.cli:main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],

    keywords="aws, ecs, autoscaling, cloudwatch, github-action, deployment",
)
