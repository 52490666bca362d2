# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import json
import logging
import os
import re
import string
import urllib.parse

logger = logging.getLogger(__name__)

DBNAME_RE = re.compile(r'^[a-z][a-z0-9_$()+/-]*$')


def is_valid_dbname(name):
    """ Check a database name against CouchDB naming rule: a lowercase
    letter first, then lowercase letters, digits and any of `_$()+-/`.

        >>> is_valid_dbname("my_database_123")
        True
        >>> is_valid_dbname("Database_123")
        False
    """
    return DBNAME_RE.fullmatch(name) is not None


def is_valid_url_scheme(url):
    try:
        uri = urllib.parse.urlsplit(url)
    except ValueError:
        return False
    return uri.scheme in ("http", "https") and bool(uri.netloc)


def form_authenticated_url(url, username, password):
    """ return `url` with `username` and `password` set as user info.
    The url is returned unchanged when one of them is empty. """
    uri = urllib.parse.urlsplit(url)
    if not username or not password:
        return url
    netloc = uri.netloc.rpartition("@")[2]
    userinfo = "%s:%s" % (urllib.parse.quote(username, safe=""),
                          urllib.parse.quote(password, safe=""))
    return urllib.parse.urlunsplit((uri.scheme, "%s@%s" % (userinfo, netloc),
                                    uri.path, uri.query, uri.fragment))


def rcpath():
    """ configuration files, the last one wins """
    return [os.path.expanduser('~/.couchservice.conf'),
            os.path.join(os.getcwd(), '.couchservicerc')]


def read_json(fname, use_environment=False):
    """ read a json file and deserialize

    :attr filename: string
    :attr use_environment: boolean, default is False. If
    True, replace environment variable by their value in file
    content

    :return: dict or list
    """
    try:
        with open(fname, encoding='utf-8') as f:
            data = f.read()
    except FileNotFoundError:
        return {}

    if use_environment:
        data = string.Template(data).safe_substitute(os.environ)

    try:
        data = json.loads(data)
    except ValueError:
        logger.error("Json is invalid, can't load %s", fname)
        return {}
    return data
