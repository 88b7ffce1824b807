from pathlib import Path
from setuptools import setup, find_packages


def read_readme() -> str:
    readme_path = Path(__file__).resolve().parent / "README.md"
    return readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""


setup(
    name="toimod",
    version="1.0.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "cryptography>=43.0.0",
        "colorama>=0.4.6",
    ],
    entry_points={
        "console_scripts": [
            "toimod=toimod.core:main",
        ],
    },
    python_requires=">=3.10",
    description="Pack and unpack Tale of Immortal mods and save folders",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
)
