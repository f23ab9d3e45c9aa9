"""
tubeaudio — setuptools build script.

Usage:
    # Development:
    pip install -e .

    # Run tests:
    python3 -m pytest tests
"""

from setuptools import setup

APP_NAME = "tubeaudio"

PACKAGES = [
    "tubeaudio",
    "tubeaudio.core",
]

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Video to MP3 conversion jobs driven by yt-dlp, with TTL cleanup",
    packages=PACKAGES,
    py_modules=["main"],
    install_requires=[],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "tubeaudio=main:main",
        ],
    },
)
