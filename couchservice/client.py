# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import dataclasses
import json
import logging
from types import MappingProxyType
from typing import Any, Dict, Optional

from couchservice.errors import *
from couchservice import params as view_params
from couchservice import resource
from couchservice import shapes
from couchservice import util

logger = logging.getLogger(__name__)

# statuses of a document read that mean the document isn't there
STATUS_ERRORS = MappingProxyType({
    400: DocumentNotFound,
    404: DocumentNotFound,
})


class Server(object):
    """ Server object that allows you to access and manage a couchdb node.
    """

    def __init__(self, url='http://127.0.0.1:5984/', username=None, password=None,
            max_retries=resource.DEFAULT_MAX_RETRIES,
            retry_delay=resource.DEFAULT_RETRY_DELAY,
            timeout=resource.DEFAULT_TIMEOUT, session=None):
        """ constructor for Server object

        @param url: uri of CouchDb host, may embed user:password
        @param username: str, user name for basic auth
        @param password: str, password for basic auth
        @param max_retries: maximum number of attempts of a request
        @param retry_delay: seconds to wait between two attempts
        @param timeout: seconds an attempt may take
        @param session: a `requests.Session` to share connections with
        """
        if not url:
            raise ValueError("Server url is missing")
        if not util.is_valid_url_scheme(url):
            raise ValueError("Invalid server url %r" % url)
        url = util.form_authenticated_url(url, username, password)

        self.res = resource.CouchDBResource(url, max_retries=max_retries,
                            retry_delay=retry_delay, timeout=timeout,
                            session=session)
        self.url = self.res.uri
        self.errors = STATUS_ERRORS

    @classmethod
    def from_config(cls, conf, **kwargs):
        """ create a Server from a `couchservice.config.Config` """
        for key in ('username', 'password', 'max_retries', 'retry_delay',
                    'timeout'):
            kwargs.setdefault(key, conf.get(key))
        return cls(conf['url'], **kwargs)

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.url)

    def close(self):
        """ close the HTTP session if this server created it """
        self.res.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def is_up(self, deadline=None):
        """ True if the server answers a HEAD request with a 2xx status """
        try:
            status, _ = self.res.head(deadline=deadline)
        except Cancelled:
            raise
        except TransportError:
            return False
        return 200 <= status < 300

    def get_db(self, dbname, create=False, deadline=None):
        """ Return a Database object for dbname.

        @param dbname: str, name of the database
        @param create: bool, create the database if it doesn't exist
        @param deadline: `couchservice.resource.Deadline`

        @return: `Database` instance
        """
        path = resource.url_quote(dbname, safe="")
        status, body = _call(self.res, "error getting database %s" % dbname,
                             'HEAD', path, deadline=deadline)
        if status == 200:
            return Database(self.res, dbname, errors=self.errors)
        if status == 404:
            if not create:
                raise DatabaseNotFound("database %s not found" % dbname)
            self._create_db(dbname, deadline=deadline)
            return self.get_db(dbname, create=False, deadline=deadline)
        raise RequestFailed("error getting database %s" % dbname, status, body)

    def _create_db(self, dbname, deadline=None):
        if not util.is_valid_dbname(dbname):
            raise InvalidName("invalid database name: %s" % dbname)

        path = resource.url_quote(dbname, safe="")
        status, body = _call(self.res, "error creating database %s" % dbname,
                             'PUT', path, deadline=deadline)
        if status not in (201, 202):
            raise RequestFailed("error creating database %s" % dbname, status, body)
        logger.info("database %s created", dbname)

    def __getitem__(self, dbname):
        return self.get_db(dbname)


@dataclasses.dataclass
class ViewDefinition:
    map: str
    reduce: str = dataclasses.field(default="", metadata={"omitempty": True})


@dataclasses.dataclass(kw_only=True)
class DesignDocument(shapes.Document):
    language: str = "javascript"
    options: Optional[Dict[str, Any]] = dataclasses.field(default=None,
            metadata={"omitempty": True})
    filters: Optional[Dict[str, str]] = dataclasses.field(default=None,
            metadata={"omitempty": True})
    lists: Optional[Dict[str, str]] = dataclasses.field(default=None,
            metadata={"omitempty": True})
    rewrites: Any = dataclasses.field(default=None, metadata={"omitempty": True})
    shows: Optional[Dict[str, str]] = dataclasses.field(default=None,
            metadata={"omitempty": True})
    updates: Optional[Dict[str, str]] = dataclasses.field(default=None,
            metadata={"omitempty": True})
    validate_doc_update: str = dataclasses.field(default="",
            metadata={"omitempty": True})
    views: Optional[Dict[str, ViewDefinition]] = dataclasses.field(default=None,
            metadata={"omitempty": True})
    autoupdate: bool = dataclasses.field(default=False, metadata={"omitempty": True})


class Database(object):
    """ Object that abstract access to a CouchDB database.

    A Database holds no state besides its name and the resource of its
    server, it can be shared between threads.
    """

    def __init__(self, res, dbname, errors=STATUS_ERRORS):
        """Constructor for Database

        @param res: `CouchDBResource` of the server
        @param dbname: str, database name
        @param errors: mapping of status code to the exception raised
        when a document read fails with it
        """
        self.res = res
        self.dbname = dbname
        self.errors = errors

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.dbname)

    def _path(self, *parts):
        return "/".join((resource.url_quote(self.dbname, safe=""),) + parts)

    def create_doc(self, doc, deadline=None):
        """ Create a new document, CouchDB assigns its id when `doc` has
        no `_id`.

        @param doc: dict or dataclass
        @return: `CreateDocResponse` with the id and rev of the document
        """
        status, body = _call(self.res, "error creating doc", 'POST', self._path(),
                             payload=shapes.encode(doc), deadline=deadline)
        if status not in (200, 201):
            raise RequestFailed("error creating doc", status, body)
        return shapes.decode(shapes.CreateDocResponse, _json(body))

    def get_doc(self, docid, doc_type=dict, deadline=None):
        """Get document from database

        @param docid: str, document id to retrieve
        @param doc_type: dict (or a dict subclass) or a dataclass, the
        type the document is decoded into.

        @return: instance of `doc_type`
        """
        if not shapes.is_valid_param(doc_type):
            raise InvalidArgument("doc_type must be a dict or a dataclass type, "
                                  "got %r" % (doc_type,))
        status, body = _call(self.res, "error getting doc %s" % docid, 'GET',
                             self._path(resource.escape_docid(docid)),
                             deadline=deadline)
        if status != 200:
            if status in self.errors:
                raise self.errors[status]("document %s not found" % docid)
            raise RequestFailed("error getting doc %s" % docid, status, body)
        return shapes.decode(doc_type, _json(body))

    def update_doc(self, docid, doc, deadline=None):
        """ Update a document. `doc` must carry `_id` and the current
        `_rev`, the server rejects stale revisions with
        `ResourceConflict`.

        @param docid: str, document id
        @param doc: dict or dataclass
        @return: `CreateDocResponse` with the new revision
        """
        shapes.check_parameter(doc)

        status, body = _call(self.res, "error updating doc %s" % docid, 'PUT',
                             self._path(resource.escape_docid(docid)),
                             payload=shapes.encode(doc), deadline=deadline)
        if status == 409:
            raise ResourceConflict("error updating doc %s" % docid, status, body)
        if status not in (200, 201):
            raise RequestFailed("error updating doc %s" % docid, status, body)
        return shapes.decode(shapes.CreateDocResponse, _json(body))

    def delete_doc(self, docid, deadline=None):
        """ delete a document, its current revision is read first """
        doc = self.get_doc(docid, dict, deadline=deadline)

        status, body = _call(self.res, "error deleting doc %s" % docid, 'DELETE',
                             self._path(resource.escape_docid(docid)),
                             deadline=deadline, rev=doc.get('_rev', ''))
        if status == 409:
            raise ResourceConflict("error deleting doc %s" % docid, status, body)
        if status not in (200, 202):
            raise RequestFailed("error deleting doc %s" % docid, status, body)

    def doc_exists(self, docid, deadline=None):
        """Test if document exists in a database

        @param docid: str, document id
        @return: boolean, True if document exist
        """
        status, body = _call(self.res, "error checking doc %s" % docid, 'HEAD',
                             self._path(resource.escape_docid(docid)),
                             deadline=deadline)
        if status in (200, 304):
            return True
        if status == 404:
            return False
        raise RequestFailed("unexpected status checking doc %s" % docid,
                            status, body)

    def create_design_doc(self, name, views, deadline=None):
        """ Create or update the design document `_design/<name>`.

        The current design document is read first to carry its revision
        forward. Two callers creating the same design document at the
        same time may both see none, the second write then fails with
        `ResourceConflict`.

        @param name: str, design document name, without `_design/`
        @param views: dict of view name to `ViewDefinition` (or dict
        with `map` and optional `reduce`)
        """
        docid = "_design/%s" % name
        design = DesignDocument(id=docid, autoupdate=True,
                    views=dict((k, _view_definition(v)) for k, v in views.items()))
        try:
            current = self.get_doc(docid, dict, deadline=deadline)
        except DocumentNotFound:
            logger.debug("design doc %s not found in %s", docid, self.dbname)
        else:
            design.rev = current.get("_rev", "")

        status, body = _call(self.res, "error creating design doc %s" % name,
                             'PUT', self._path(resource.escape_docid(docid)),
                             payload=shapes.encode(design), deadline=deadline)
        if status == 409:
            raise ResourceConflict("error creating design doc %s" % name,
                                   status, body)
        if status not in (200, 201):
            raise RequestFailed("error creating design doc %s" % name, status, body)

    def view(self, design, view, params=None, result_type=shapes.ViewResponse,
            deadline=None):
        """ Query the view `view` of the design document `design`.

        @param params: `ViewParams` or dict of view options, options left
        unset are not sent. When `keys` is set the query is POSTed.
        @param result_type: dataclass the results are decoded into, it
        must have a `rows` sequence of rows with `id` and `key` fields.

        @return: instance of `result_type`
        """
        shapes.check_struct_for_json_fields(result_type)
        if not isinstance(result_type, type):
            result_type = type(result_type)

        options = view_params.as_dict(params)
        keys = options.pop('keys', None)
        query = view_params.encode_params(options)
        path = self._path("_design", resource.url_quote(design, safe=""),
                          "_view", resource.url_quote(view, safe=""))
        what = "error getting view %s/%s" % (design, view)
        if keys is not None:
            status, body = _call(self.res, what, 'POST', path,
                                 payload={'keys': keys}, deadline=deadline, **query)
        else:
            status, body = _call(self.res, what, 'GET', path, deadline=deadline,
                                 **query)
        if status != 200:
            raise RequestFailed(what, status, body)
        return shapes.decode(result_type, _json(body))


def _call(res, what, method, path=None, **kwargs):
    try:
        return res.request(method, path, **kwargs)
    except TransportError as e:
        raise type(e)("%s: %s" % (what, e), attempts=e.attempts) from e


def _view_definition(view):
    if isinstance(view, ViewDefinition):
        return view
    if 'map' not in view:
        raise InvalidArgument("view definition needs a map function")
    return ViewDefinition(map=view['map'], reduce=view.get('reduce', ''))


def _json(body):
    try:
        return json.loads(body)
    except ValueError as e:
        raise DecodeError("can't deserialize response: %s" % e) from e
