"""
setup.py: The setup script to make stayprice pip-installable.
"""
from setuptools import setup, find_packages

setup(
    name="stayprice",
    version="1.0.0",
    packages=find_packages(),
    package_data={"stayprice.tests": ["data/*.xml", "data/*.json"]},
    install_requires=["lark"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.7",
    description="Rate plan validation and stay pricing engine, plus CLI (XML/JSON rate plan documents).",
    author="Your Name",
    author_email="your.email@example.com",
    url="https://github.com/yourname/stayprice",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    entry_points={
        "console_scripts": [
            # This line exposes a CLI command named "stayprice"
            # which points to the 'main_cli' function inside stayprice.run.
            "stayprice=stayprice.run:main_cli",
        ]
    },
)
