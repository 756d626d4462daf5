"""setup.py for ottsave.

Pure Python; numpy handles fixed-size record blocks, zstandard the zstd
scheme (zlib and lzma come from the standard library) and rich the CLI.
"""

from setuptools import find_packages, setup

setup(
    name="ottsave",
    version="0.3.0",
    description="Decoder for chunked, versioned transport-game savegames",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.21",
        "zstandard>=0.18",
        "rich>=12.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "ottsave=ottsave.__main__:main",
        ],
    },
)
