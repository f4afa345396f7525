#!/usr/bin/env python3
"""
FRIDAY Voice Assistant
Setup script for pip installation
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme = Path(__file__).parent / "README.md"
long_description = readme.read_text() if readme.exists() else ""

setup(
    name="friday",
    version="1.0.0",
    description="Wake-word voice assistant with screen awareness",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
    install_requires=[
        "sounddevice>=0.4.6",
        "numpy>=1.24.0",
        "faster-whisper>=0.10.0",
        "anthropic>=0.18.0",
        "aiohttp>=3.9.0",
        "edge-tts>=6.1.0",
        "soundfile>=0.12.1",
        "mss>=9.0.0",
        "tomli>=2.0.0; python_version<'3.11'",
    ],
    extras_require={
        "elevenlabs": ["elevenlabs>=1.0.0", "httpx>=0.24.0"],
        "dev": ["pytest", "black", "mypy"],
    },
    entry_points={
        "console_scripts": [
            "friday=friday.__main__:main",
        ],
    },
)
