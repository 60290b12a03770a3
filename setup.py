"""Setup configuration for geocode-jobs library."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="geocode-jobs",
    version="0.1.0",
    author="Geocode Jobs Contributors",
    description="Queued address geocoding with per-user monthly quotas",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: GIS",
    ],
    python_requires=">=3.9",
    install_requires=[
        "aiohttp>=3.8.0",
        "asyncpg>=0.27.0",
        "fastapi>=0.110.0,<0.137",
        "pydantic>=2.0.0",
        "python-dateutil>=2.8.0",
        "uvicorn[standard]>=0.20.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "testcontainers[postgres]>=4.0.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "flake8>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "geocode-jobs-worker=geocode_jobs.worker_main:main",
            "geocode-jobs-api=geocode_jobs.app:main",
        ],
    },
)
