"""Setup script for the LocalEvents offline cache."""

import os
from pathlib import Path

from setuptools import find_packages, setup
from setuptools.command.develop import develop
from setuptools.command.install import install


def post_install_setup():
    """Create the default configuration, data and cache directories."""
    try:
        config_dir = Path.home() / ".config" / "localevents"
        data_dir = Path.home() / ".local" / "share" / "localevents"
        cache_dir = Path.home() / ".cache" / "localevents"

        for directory in [config_dir, data_dir, cache_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            if hasattr(os, "chmod"):
                os.chmod(directory, 0o755)

        if not (config_dir / "config.yaml").exists():
            print(f"LocalEvents installed. Optional config: {config_dir / 'config.yaml'}")
            print("See config/config.yaml.example and run 'localevents --help'.")

    except OSError as e:
        print(f"Warning: Post-install setup failed: {e}")
        print("You may need to create configuration directories manually.")


class PostInstallCommand(install):
    """Custom install command with post-install setup."""

    def run(self):
        install.run(self)
        post_install_setup()


class PostDevelopCommand(develop):
    """Custom develop command with post-install setup."""

    def run(self):
        develop.run(self)
        post_install_setup()


readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Split requirements.txt into runtime and test dependencies
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    for line in requirements_file.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "pytest" in line:
            test_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="localevents",
    version="1.0.0",
    description="Two-tier offline cache (event pages and images) for the LocalEvents app",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="LocalEvents Team",
    packages=find_packages(include=["localevents", "localevents.*"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements
        + [
            "black>=23.0.0",
            "mypy>=1.0.0",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: AsyncIO",
    ],
    keywords="events cache offline images favorites async",
    entry_points={
        "console_scripts": [
            "localevents=localevents.__main__:main",
        ],
    },
    cmdclass={
        "install": PostInstallCommand,
        "develop": PostDevelopCommand,
    },
    zip_safe=False,
)
