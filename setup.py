from setuptools import setup, find_packages


setup(
    name="fct",
    version="0.1",
    packages=find_packages(include=["fct", "fct.*"]),
    description="A sequential file container that stores files as fixed-size, zero-padded chunks.",
    author="vercingetorx",
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "fct=fct.cli:main",
        ]
    },
)
