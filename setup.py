"""Setup script for Sunsetter."""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from package
version = {}
with open("sunsetter/__init__.py") as f:
    for line in f:
        if line.startswith("__version__"):
            exec(line, version)

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="sunsetter",
    version=version["__version__"],
    author="Isaac",
    description="Switch the desktop between light and dark appearance at sunrise and sunset",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "astral>=3.2",
        "PyYAML>=6.0",
        "pytz>=2024.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sunsetter=sunsetter.main:cli",
        ],
    },
    data_files=[
        ("share/sunsetter", ["config.yaml"]),
        ("lib/systemd/user", ["sunsetter.service"]),
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Desktop Environment",
    ],
)
