# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import os

from couchservice import resource
from couchservice import util


class Config(object):
    """ main object to read configuration from ~/.couchservice.conf and
    .couchservicerc in the current folder. Environment variables
    COUCHSERVICE_URL, COUCHSERVICE_USERNAME and COUCHSERVICE_PASSWORD
    override the files.
    """
    DEFAULT_SERVER_URI = "http://127.0.0.1:5984/"

    DEFAULTS = dict(
        url = DEFAULT_SERVER_URI,
        username = None,
        password = None,
        max_retries = resource.DEFAULT_MAX_RETRIES,
        retry_delay = resource.DEFAULT_RETRY_DELAY,
        timeout = resource.DEFAULT_TIMEOUT
    )

    ENVIRON = dict(
        url = "COUCHSERVICE_URL",
        username = "COUCHSERVICE_USERNAME",
        password = "COUCHSERVICE_PASSWORD"
    )

    def __init__(self, paths=None, environ=None):
        if paths is None:
            paths = util.rcpath()
        if environ is None:
            environ = os.environ
        self.conf = self.load(paths, self.DEFAULTS.copy())
        for key, name in self.ENVIRON.items():
            if environ.get(name):
                self.conf[key] = environ[name]

    def load(self, path, default=None):
        """ load config """
        conf = default if default is not None else {}

        if isinstance(path, str):
            paths = [path]
        else:
            paths = path

        for p in paths:
            if os.path.isfile(p):
                new_conf = util.read_json(p, use_environment=True)
                if not isinstance(new_conf, dict):
                    raise ValueError("%s should contain a JSON object" % p)
                conf.update(new_conf)
        return conf

    def get(self, key, default=None):
        return self.conf.get(key, default)

    def __getitem__(self, key):
        return self.conf[key]

    def __getattr__(self, key):
        try:
            return self.__dict__['conf'][key]
        except KeyError:
            raise AttributeError(key) from None

    def __contains__(self, key):
        return (key in self.conf)
