# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Generate a localca package.
"""

import re

from setuptools import setup, find_packages

with open("README.rst") as readme:
    description = readme.read()

with open("localca/_version.py") as version_file:
    version = re.search(
        r'^__version__ = "([^"]+)"', version_file.read(), re.MULTILINE
    ).group(1)


def parse_requirements(requirements_file):
    """
    Parse a requirements file.

    Comments and blank lines are skipped.  Environment markers are left in
    place for setuptools to evaluate.
    """
    requirements = []
    with open(requirements_file) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            requirements.append(line)
    return requirements

# Parse the ``.in`` files. This will allow the dependencies to float when
# localca is installed using ``pip install .``.
install_requires = parse_requirements("requirements/localca.txt.in")
dev_requires = parse_requirements("requirements/localca-dev.txt.in")

setup(
    # This is the human-targetted name of the software being packaged.
    name="localca",
    # This is a string giving the version of the software being packaged.  For
    # simplicity it should be something boring like X.Y.Z.
    version=version,
    # This identifies the creators of this software.  This is left symbolic for
    # ease of maintenance.
    author="ClusterHQ Team",
    # This is contact information for the authors.
    author_email="support@clusterhq.com",
    # Here is a website where more information about the software is available.
    url="https://clusterhq.com/",

    # A short identifier for the license under which the project is released.
    license="Apache License, Version 2.0",

    # Some details about what localca is.  Synchronized with the README.rst to
    # keep it up to date more easily.
    long_description=description,

    python_requires=">=3.8",

    # This setuptools helper will find everything that looks like a *Python*
    # package (in other words, things that can be imported) which are part of
    # the localca package.
    packages=find_packages(),

    entry_points={
        # These are the command-line programs we want setuptools to install.
        'console_scripts': [
            'localca = localca._script:localca_main',
        ],
    },

    install_requires=install_requires,

    extras_require={
        # This extra is for developers who need to work on localca itself.
        "dev": dev_requires,
    },

    # Some "trove classifiers" which are relevant.
    classifiers=[
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        ],
    )
