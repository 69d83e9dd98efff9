"""Setup configuration for APEX Orchestrator."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="apex-orchestrator",
    version="0.1.0",
    author="APEX Team",
    author_email="team@apex-orchestrator.dev",
    description="Capability orchestration router for local models, sandboxes, storage and agent networks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/apex-orchestrator/apex-orchestrator",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0.0",
        "fastapi>=0.100.0",
        "httpx>=0.24.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
        "http": [
            "uvicorn>=0.23.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "apex-orchestrator=apex_orchestrator.cli:main",
        ],
    },
)
