# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import sys

if sys.version_info < (3, 10):
    raise SystemExit("couchservice requires Python 3.10 or later.")

from setuptools import setup, find_packages


setup(
    name = 'couchservice',
    version = '0.1.0',
    license =  'Apache License 2',
    description = 'CouchDB client: databases, documents, design documents and views.',
    long_description = """couchservice maps database, document and view
    operations onto the HTTP API of CouchDB. Requests are retried on
    connection errors and server errors, documents can be plain dicts or
    dataclasses and view results are decoded into dataclasses.""",
    keywords = 'couchdb',
    platforms = ['any'],
    classifiers = [
        'License :: OSI Approved :: Apache Software License',
        'Intended Audience :: Developers',
        'Development Status :: 4 - Beta',
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
        'Topic :: Database',
    ],

    packages = find_packages(exclude=['tests']),
    python_requires = '>=3.10',

    install_requires = [
        'requests>=2.20'
    ],

    extras_require = {
        'test': ['pytest'],
    },

    test_suite = 'tests',
)
