"""Setup configuration for the Redwood flight dashboard."""

import sys
import os

# Running ``python setup.py`` with no setup command in an interactive
# terminal launches the dashboard instead of setuptools
if (__name__ == "__main__" and
    hasattr(sys.stdin, 'isatty') and sys.stdin.isatty() and
    os.path.basename(sys.argv[0]) in ("setup.py", "__main__.py")):

    setup_commands = {
        "install", "build", "sdist", "bdist", "bdist_wheel", "bdist_egg",
        "develop", "test", "check", "upload", "register", "clean", "egg_info",
        "build_ext", "build_py", "build_clib", "build_scripts", "--help", "--help-commands"
    }

    if len(sys.argv) == 1 or sys.argv[1] not in setup_commands:
        try:
            from ui_service.app import main as app_main
        except ImportError as e:
            print("Error: Could not import the dashboard.")
            print(f"Details: {e}")
            print("\nInstall the package first: pip install -e .")
            print("Then run: redwood")
            sys.exit(1)
        sys.exit(app_main(sys.argv[1:]))

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="redwood-flight-dashboard",
    version="0.1.0",
    description="Redwood - live terminal dashboard of nearby aircraft",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Redwood Team",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "rich>=13.0.0",
        "requests>=2.28.0",
        "ruamel.yaml>=0.17.21",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "redwood=ui_service.app:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Environment :: Console :: Curses",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Visualization",
    ],
)
