from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(__file__).parent


def read_version() -> str:
    for line in (HERE / "libvcursor" / "__init__.py").read_text().splitlines():
        if line.startswith("__version__"):
            return line.split("=", 1)[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="libvcursor",
        version=read_version(),
        description="Vector cursor themes with animated transitions for display servers",
        license="MIT",
        packages=find_packages(include=["libvcursor", "libvcursor.*"]),
        python_requires=">=3.11",
        install_requires=[
            "cairocffi>=1.6.0",
        ],
        extras_require={
            "test": ["pytest>=7", "pytest-cov"],
            "lint": ["flake8"],
        },
    )
