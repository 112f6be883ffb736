from setuptools import setup, find_packages

setup(
    name="robustfit",
    version="1.0.0",
    description="Robust model fitting with RANSAC, LMedS, MSAC, PROSAC and PROMedS",
    author="NovaVista",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.24.0",
        "scipy>=1.10.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.9",
)
