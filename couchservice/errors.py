# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.


class CouchServiceError(Exception):
    """ base class of all errors raised by couchservice """


class ValidationError(CouchServiceError):
    """ raised before any request when the caller input can't be used """

class InvalidName(ValidationError):
    """ database name doesn't follow the naming rule """

class InvalidArgument(ValidationError, TypeError):
    """ a parameter has the wrong shape """

class UnsupportedType(ValidationError, TypeError):
    """ document is neither a dict nor a document dataclass """

class MissingIdentifier(ValidationError):
    """ document has no _id """

class MissingRevision(ValidationError):
    """ document has no _rev """

class ShapeError(ValidationError):
    """ a result type can't hold the keys returned by the server """

class MissingRowsField(ShapeError):
    """ result type has no sequence field mapped to `rows` """

class MissingIDField(ShapeError):
    """ row type has no field mapped to `id` """

class MissingKeyField(ShapeError):
    """ row type has no field mapped to `key` """

class InvalidDocField(ShapeError):
    """ row `doc` field isn't mapped to `doc` """


class TransportError(CouchServiceError):
    """ raised when the server can't be reached after all attempts """

    def __init__(self, msg, attempts=None):
        CouchServiceError.__init__(self, msg)
        self.attempts = attempts

class Cancelled(TransportError):
    """ raised when the caller deadline passed or its event was set """


class RequestFailed(CouchServiceError):
    """ raised when the server answers with an unexpected status """

    def __init__(self, msg, status=None, body=None):
        CouchServiceError.__init__(self, msg)
        self.status = status
        self.body = body

    def __str__(self):
        msg = CouchServiceError.__str__(self)
        if self.status is None:
            return msg
        body = self.body
        if isinstance(body, bytes):
            body = body.decode('utf-8', 'replace')
        return "%s: %s - %s" % (msg, self.status, body or '')

class ResourceConflict(RequestFailed):
    """ raised when a conflict occured (stale or missing _rev) """


class ResourceNotFound(CouchServiceError):
    """ raised when a resource not found on CouchDB """

class DatabaseNotFound(ResourceNotFound):
    """ database doesn't exist and wasn't created """

class DocumentNotFound(ResourceNotFound):
    """ document doesn't exist """

class DecodeError(CouchServiceError):
    """ response body can't be deserialized into the requested type """
