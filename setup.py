#!/usr/bin/env python
"""
Analytics Dashboard Service Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="analytics-dashboard",
    version="1.0.0",
    description="Dashboards, metrics and scheduled reports over time-series metric data",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["analytics_dashboard", "analytics_dashboard.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "Topic :: Database",
        "Topic :: Scientific/Engineering :: Information Analysis",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=4.1.0",
            "aiosqlite>=0.19.0",
            "httpx>=0.26.0",
            "fakeredis>=2.20.0",
        ],
        "dev": [
            "black>=23.0.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords=[
        "analytics",
        "dashboards",
        "metrics",
        "reports",
        "fastapi",
        "postgresql",
        "redis",
        "kafka",
    ],
)
