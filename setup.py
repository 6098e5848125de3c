#!/usr/bin/env python
from setuptools import find_packages, setup

VERSION = "0.1.0"
INSTALL_REQUIREMENTS = [
    "celery[redis]",
    "Django>=5.0",
    "django-redis",
    "django-structlog",
    "Pillow",
    "psycopg[binary]",
    "requests",
    "sentry-sdk",
    "structlog",
    "urllib3",
]
TEST_REQUIREMENTS = ["pytest", "pytest-django"]
SCRIPTS = ["manage.py"]
DESCRIPTION = "Asynchronous upload of files from remote URLs"
CLASSIFIERS = """\
Environment :: Web Environment
Framework :: Django
Programming Language :: Python
Programming Language :: Python :: 3
""".splitlines()

with open("README.md", "r") as f:
    LONG_DESCRIPTION = f.read()


setup(
    name="copyupload",
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    packages=find_packages(
        include=["copyupload", "copyupload.*", "importer", "importer.*"]
    ),
    include_package_data=True,
    package_data={"importer": ["templates/importer/*.txt"]},
    scripts=SCRIPTS,
    install_requires=INSTALL_REQUIREMENTS,
    extras_require={"test": TEST_REQUIREMENTS},
    python_requires=">=3.10",
    classifiers=CLASSIFIERS,
)
