from setuptools import setup, find_packages

setup(
    name="python_cdspredict",
    version="0.1.0",
    packages=find_packages(include=["cdspredict", "cdspredict.*"]),
    install_requires=[
        "biopython>=1.79",
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "matplotlib>=3.4.0",
        "click>=8.0.0",  # For command line interface
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "cdspredict=cdspredict.predict:main",
        ],
    },
    author="cdspredict Project",
    author_email="example@example.com",
    description="Predict protein coding ORFs with trusted/background Markov models",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.8",
)
