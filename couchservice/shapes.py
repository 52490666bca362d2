# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

"""
Record types exchanged with CouchDB and the structural checks run on
caller supplied types before a request is sent.

Documents are either plain dicts or dataclasses. The JSON key of a
dataclass field is its name, unless the field carries a `json` metadata
entry::

    @dataclasses.dataclass(kw_only=True)
    class Person(Document):
        name: str
        age: int = 0
        nick: str = dataclasses.field(default="", metadata={"json": "nickname"})

A field with an `omitempty` metadata entry is left out of the JSON body
when its value is empty.
"""

from collections.abc import Mapping, Sequence
import dataclasses
import types
import typing
from typing import Any, Dict, List, Optional

from couchservice.errors import DecodeError, InvalidDocField, \
MissingIDField, MissingIdentifier, MissingKeyField, MissingRevision, \
MissingRowsField, UnsupportedType


@dataclasses.dataclass(kw_only=True)
class Document:
    """ reserved fields of a CouchDB document, subclass it to declare
    your own document types """
    id: str = dataclasses.field(default="",
                                metadata={"json": "_id", "omitempty": True})
    rev: str = dataclasses.field(default="",
                                 metadata={"json": "_rev", "omitempty": True})


@dataclasses.dataclass
class CreateDocResponse:
    id: str = ""
    rev: str = ""
    ok: bool = False


@dataclasses.dataclass
class ViewRow:
    id: Optional[str] = None
    key: Any = None
    value: Any = None
    doc: Optional[Dict[str, Any]] = None


@dataclasses.dataclass
class ViewResponse:
    offset: int = 0
    rows: List[ViewRow] = dataclasses.field(default_factory=list)
    total_rows: int = 0
    update_seq: Any = None


def json_key(field):
    return field.metadata.get("json", field.name)


def _fields_by_key(tp):
    return dict((json_key(f), f) for f in dataclasses.fields(tp))


def _type_hints(tp):
    try:
        return typing.get_type_hints(tp)
    except (NameError, TypeError):
        return dict((f.name, f.type) for f in dataclasses.fields(tp))


def _is_dataclass_type(tp):
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def _is_mapping_type(tp):
    origin = typing.get_origin(tp) or tp
    return isinstance(origin, type) and issubclass(origin, Mapping)


def _sequence_item_type(tp):
    """ return the item type of a sequence annotation, or raise TypeError
    if `tp` isn't a sequence """
    origin = typing.get_origin(tp) or tp
    if not isinstance(origin, type) or not issubclass(origin, Sequence) \
            or issubclass(origin, (str, bytes)):
        raise TypeError("%r isn't a sequence" % (tp,))
    args = typing.get_args(tp)
    if args:
        return args[0]
    return Any


def is_valid_param(doc_type):
    """ True if a document can be decoded into `doc_type`: a dict type
    or a dataclass """
    if not isinstance(doc_type, type):
        return False
    return issubclass(doc_type, dict) or dataclasses.is_dataclass(doc_type)


def check_parameter(doc):
    """ Check that `doc` carries the fields needed to update it.

    A mapping must contain both `_id` and `_rev` keys. A dataclass must
    have fields mapped to `_id` and `_rev` (subclassing `Document` is
    enough) and both must be set, empty ones are not sent.
    """
    if isinstance(doc, Mapping):
        if "_id" not in doc:
            raise MissingIdentifier("missing _id field")
        if "_rev" not in doc:
            raise MissingRevision("missing _rev field")
        return

    if dataclasses.is_dataclass(doc) and not isinstance(doc, type):
        fields = _fields_by_key(type(doc))
        if "_id" not in fields or not getattr(doc, fields["_id"].name):
            raise MissingIdentifier("missing _id field")
        if "_rev" not in fields or not getattr(doc, fields["_rev"].name):
            raise MissingRevision("missing _rev field")
        return

    raise UnsupportedType("unsupported document type %s" % type(doc).__name__)


def check_struct_for_json_fields(result_type):
    """ Check that view results can be decoded into `result_type`.

    `result_type` must be a dataclass with a sequence field mapped to
    `rows`. When rows are dataclasses they must have fields mapped to `id`
    and `key`, and a `doc` field, if any, must be mapped to `doc`. Rows
    typed as mappings (or not typed) can hold anything.
    """
    if not isinstance(result_type, type):
        result_type = type(result_type)
    if not dataclasses.is_dataclass(result_type):
        raise MissingRowsField("%s must be a dataclass with a 'rows' field"
                               % result_type.__name__)

    fields = _fields_by_key(result_type)
    if "rows" not in fields:
        raise MissingRowsField("%s has no field mapped to 'rows'"
                               % result_type.__name__)
    hints = _type_hints(result_type)
    try:
        row_type = _sequence_item_type(hints.get(fields["rows"].name, Any))
    except TypeError:
        raise MissingRowsField("'rows' field of %s must be a sequence"
                               % result_type.__name__) from None

    if row_type is Any or _is_mapping_type(row_type):
        return
    if not _is_dataclass_type(row_type):
        raise MissingIDField("rows of %s must be dataclasses or mappings"
                             % result_type.__name__)

    row_fields = _fields_by_key(row_type)
    if "id" not in row_fields:
        raise MissingIDField("%s has no field mapped to 'id'" % row_type.__name__)
    if "key" not in row_fields:
        raise MissingKeyField("%s has no field mapped to 'key'" % row_type.__name__)
    for f in dataclasses.fields(row_type):
        if f.name == "doc" and json_key(f) != "doc":
            raise InvalidDocField("'doc' field of %s must be mapped to 'doc'"
                                  % row_type.__name__)


def encode(obj):
    """ return the JSON-ready form of a document """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        data = {}
        for f in dataclasses.fields(obj):
            value = getattr(obj, f.name)
            if f.metadata.get("omitempty") and not value:
                continue
            data[json_key(f)] = encode(value)
        return data
    if isinstance(obj, Mapping):
        return dict((k, encode(v)) for k, v in obj.items())
    if isinstance(obj, (list, tuple)):
        return [encode(v) for v in obj]
    return obj


def decode(tp, data):
    """ build an instance of `tp` from deserialized JSON `data`.
    Unknown keys are ignored. """
    if data is None or tp is Any or tp is object:
        return data

    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return decode(args[0], data)
        return data

    if _is_dataclass_type(tp):
        if not isinstance(data, Mapping):
            raise DecodeError("can't decode %s into %s"
                              % (type(data).__name__, tp.__name__))
        hints = _type_hints(tp)
        kwargs = {}
        for f in dataclasses.fields(tp):
            key = json_key(f)
            if f.init and key in data:
                kwargs[f.name] = decode(hints.get(f.name, Any), data[key])
        try:
            return tp(**kwargs)
        except TypeError as e:
            raise DecodeError("can't decode into %s: %s" % (tp.__name__, e)) from e

    origin = origin or tp
    if not isinstance(origin, type):
        return data
    args = typing.get_args(tp)
    if issubclass(origin, Mapping) and isinstance(data, Mapping):
        value_type = args[1] if len(args) == 2 else Any
        items = dict((k, decode(value_type, v)) for k, v in data.items())
        if issubclass(origin, dict) and origin is not dict:
            return origin(items)
        return items
    if issubclass(origin, (list, tuple)) and isinstance(data, list):
        item_type = args[0] if args else Any
        items = [decode(item_type, v) for v in data]
        if issubclass(origin, tuple):
            return tuple(items)
        return items
    return data

