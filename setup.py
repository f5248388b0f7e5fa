""" cromsig build script for setuptools.

"""

from setuptools import find_packages, setup  # type: ignore

import cromsig

with open("README.md", "r", encoding="ascii") as file_:
    longdescription = file_.read()

setup(
    name=cromsig.name,
    version=cromsig.__version__,
    license=cromsig.__license__,
    author=cromsig.__author__,
    author_email=cromsig.__author_email__,
    description="Multi-party Schnorr multi-signature coordination",
    long_description=longdescription,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"cromsig": ["_data/*.json"]},
    include_package_data=True,
    install_requires=["btclib>=2023.1.17,<2024", "dataclasses_json"],
    extras_require={"test": ["pytest"]},
    keywords=(
        "multisig schnorr bip340 musig key-aggregation "
        "elliptic-curves secp256k1 bech32"
    ),
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
)
