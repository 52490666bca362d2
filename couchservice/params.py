# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

from collections.abc import Mapping
import dataclasses
import json
from typing import Any, List, Optional

from couchservice.errors import InvalidArgument
from couchservice.resource import url_encode

# options sent as JSON whatever their python type
KEY_OPTIONS = ('key', 'keys', 'startkey', 'endkey')

# CouchDB defaults these to true, an explicit False must reach the server
TRUE_BY_DEFAULT = ('inclusive_end', 'reduce', 'sorted')


@dataclasses.dataclass
class ViewParams:
    """ Options of a view query. See `CouchDB view API
    <https://docs.couchdb.org/en/stable/api/ddoc/views.html>`_.

    Options left to None are not sent.
    """
    conflicts: Optional[bool] = None
    descending: Optional[bool] = None
    endkey: Any = None
    endkey_docid: Optional[str] = None
    group: Optional[bool] = None
    group_level: Optional[int] = None
    include_docs: Optional[bool] = None
    attachments: Optional[bool] = None
    att_encoding_info: Optional[bool] = None
    inclusive_end: Optional[bool] = None
    key: Any = None
    keys: Optional[List[Any]] = None
    limit: Optional[int] = None
    reduce: Optional[bool] = None
    skip: Optional[int] = None
    sorted: Optional[bool] = None
    stable: Optional[bool] = None
    stale: Optional[str] = None
    startkey: Any = None
    startkey_docid: Optional[str] = None
    update: Optional[str] = None
    update_seq: Optional[bool] = None

OPTIONS = tuple(f.name for f in dataclasses.fields(ViewParams))


def as_dict(params):
    """ return the options set in `params` (a `ViewParams`, a mapping
    or None) as a plain dict """
    if params is None:
        return {}
    if isinstance(params, ViewParams):
        items = dict((name, getattr(params, name)) for name in OPTIONS)
    elif isinstance(params, Mapping):
        items = dict(params)
        unknown = sorted(set(items) - set(OPTIONS))
        if unknown:
            raise InvalidArgument("unknown view options: %s" % ", ".join(unknown))
    else:
        raise InvalidArgument("view params should be a ViewParams or a dict, "
                              "got %s" % type(params).__name__)
    return dict((k, v) for k, v in items.items() if _is_set(k, v))


def _is_set(name, value):
    if value is None:
        return False
    if name in KEY_OPTIONS:
        return True
    if value is False and name in TRUE_BY_DEFAULT:
        return True
    return bool(value)


def encode_params(params):
    """ encode parameters in json if needed """
    _params = {}
    for name, value in as_dict(params).items():
        if name in KEY_OPTIONS or not isinstance(value, str):
            value = json.dumps(value)
        _params[name] = value
    return _params


def to_query_string(params):
    return url_encode(encode_params(params))
