"""
Setup script for the samsung-tv-bridge package.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="samsung-tv-bridge",
    version="0.1.0",
    description="A Python-based web service that discovers Samsung TVs on the local network and exposes their remote controls over HTTP",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Home Automation",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    ],
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.100.0,<0.137",
        "uvicorn>=0.15.0",
        "pydantic>=2.0",
        "python-dotenv>=0.19.0",
        "aiosqlite>=0.17.0",
        "aiohttp>=3.8.0",
        "async-upnp-client>=0.33.0",
        "samsungtvws[async]>=2.6.0",
        "websockets>=10.0",
        "wakeonlan>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=2.0",
            "httpx>=0.23",
            "black>=21.0",
            "mypy>=0.9",
            "flake8>=3.9",
        ],
    },
    entry_points={
        "console_scripts": [
            "samsung-tv-bridge=samsung_tv_bridge.app.main:main",
        ],
    },
)
