# setup.py
from setuptools import setup, find_packages


def parse_reqs(fname="requirements.txt"):
    with open(fname) as f:
        # strip comments and empty lines
        return [l.strip() for l in f if l.strip() and not l.startswith("#")]


setup(
    name="agrisentinel",
    version="0.1.0",
    package_dir={"agrisentinel": "agrisentinel"},
    packages=find_packages(include=["agrisentinel", "agrisentinel.*"]),
    install_requires=parse_reqs(),
    extras_require={"test": ["pytest"]},
    include_package_data=True,
    package_data={"agrisentinel": ["resources/*.toml"]},
    python_requires=">=3.10",
    entry_points={"console_scripts": ["agrisentinel=agrisentinel.core.cli:cli"]},
)
