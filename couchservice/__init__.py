# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import logging
from importlib import metadata

try:
    __version__ = metadata.version('couchservice')
except metadata.PackageNotFoundError:
    __version__ = '?'

logging.getLogger(__name__).addHandler(logging.NullHandler())

from couchservice.client import Server, Database, DesignDocument, \
ViewDefinition, STATUS_ERRORS
from couchservice.config import Config
from couchservice.errors import *
from couchservice.params import ViewParams
from couchservice.resource import CouchDBResource, Deadline
from couchservice.shapes import Document, ViewResponse, ViewRow, \
CreateDocResponse
