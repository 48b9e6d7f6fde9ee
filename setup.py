"""Setup script for agent_spawner package."""

from setuptools import find_packages, setup

setup(
    name="agent-spawner",
    version="0.1.0",
    description="Launch local agents on demand for outstanding Buildkite jobs",
    packages=find_packages(include=["agent_spawner", "agent_spawner.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "requests>=2.25.0",
        "fastapi>=0.100",
        "uvicorn>=0.23",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "agent-spawner=agent_spawner.daemon:main",
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
    ],
)
