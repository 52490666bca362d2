# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import dataclasses
from typing import Any, List
import unittest
from unittest import mock

import requests

from couchservice.client import Database, DesignDocument, Server, \
ViewDefinition, STATUS_ERRORS
from couchservice.config import Config
from couchservice.errors import *
from couchservice.params import ViewParams
from couchservice.resource import Deadline
from couchservice.shapes import CreateDocResponse, Document, ViewResponse
from tests.fakes import FakeResponse, FakeSession

BASE = "http://127.0.0.1:5984/"


def make_server(*responses, **kwargs):
    kwargs.setdefault('retry_delay', 0)
    return Server(BASE, session=FakeSession(*responses), **kwargs)


def make_db(*responses):
    server = make_server(*responses)
    return Database(server.res, "couchservice-test"), server.res.session


@dataclasses.dataclass(kw_only=True)
class Person(Document):
    name: str
    age: int = 0


class ServerTestCase(unittest.TestCase):

    def testGetExistingDb(self):
        server = make_server(FakeResponse(200))
        db = server.get_db("my_db")
        self.assertIsInstance(db, Database)
        self.assertEqual(db.dbname, "my_db")
        self.assertIs(db.errors, STATUS_ERRORS)
        req = server.res.session.requests[0]
        self.assertEqual((req['method'], req['url']), ('HEAD', BASE + "my_db"))

    def testGetItem(self):
        server = make_server(FakeResponse(200))
        self.assertEqual(server["my_db"].dbname, "my_db")

    def testMissingDbNotCreated(self):
        server = make_server(FakeResponse(404))
        self.assertRaises(DatabaseNotFound, server.get_db, "my_db")
        self.assertEqual(len(server.res.session.requests), 1)

    def testMissingDbCreated(self):
        server = make_server(FakeResponse(404), FakeResponse(201, {"ok": True}),
                             FakeResponse(200))
        db = server.get_db("my_db", create=True)
        self.assertEqual(db.dbname, "my_db")
        methods = [r['method'] for r in server.res.session.requests]
        self.assertEqual(methods, ['HEAD', 'PUT', 'HEAD'])
        self.assertIsNone(server.res.session.requests[1]['data'])

    def testDbNameWithSlashIsQuoted(self):
        server = make_server(FakeResponse(200))
        server.get_db("a/b")
        self.assertEqual(server.res.session.requests[0]['url'], BASE + "a%2Fb")

    def testInvalidNameNotCreated(self):
        server = make_server(FakeResponse(404))
        self.assertRaises(InvalidName, server.get_db, "My_DB", create=True)
        self.assertEqual(len(server.res.session.requests), 1)

    def testCreationFailure(self):
        server = make_server(FakeResponse(404),
                             FakeResponse(412, {"error": "file_exists"}))
        with self.assertRaises(RequestFailed) as cm:
            server.get_db("my_db", create=True)
        self.assertEqual(cm.exception.status, 412)
        self.assertIn("file_exists", str(cm.exception))

    def testUnexpectedStatus(self):
        server = make_server(FakeResponse(401, b"unauthorized"))
        with self.assertRaises(RequestFailed) as cm:
            server.get_db("my_db")
        self.assertEqual(cm.exception.status, 401)
        self.assertEqual(cm.exception.body, b"unauthorized")

    def testCloseLeavesSharedSessionOpen(self):
        server = make_server()
        server.close()
        self.assertFalse(server.res.session.closed)

    def testCloseOwnSession(self):
        server = Server(BASE)
        self.assertIsInstance(server.res.session, requests.Session)
        with mock.patch.object(server.res.session, 'close') as close:
            with server:
                pass
        close.assert_called_once_with()

    def testTransportErrorWrapped(self):
        server = make_server(requests.ConnectionError("refused"), max_retries=1)
        with self.assertRaises(TransportError) as cm:
            server.get_db("my_db")
        self.assertIn("my_db", str(cm.exception))
        self.assertIsInstance(cm.exception.__cause__, TransportError)

    def testCancelledStaysCancelled(self):
        server = make_server(FakeResponse(200))
        deadline = Deadline()
        deadline.cancel()
        self.assertRaises(Cancelled, server.get_db, "my_db", deadline=deadline)

    def testCredentials(self):
        session = FakeSession()
        server = Server("http://localhost:5984", username="admin",
                        password="secret", session=session)
        self.assertEqual(session.auth, ("admin", "secret"))
        self.assertEqual(server.url, "http://localhost:5984/")

    def testInvalidUrl(self):
        self.assertRaises(ValueError, Server, "")
        self.assertRaises(ValueError, Server, "localhost:5984")

    def testIsUp(self):
        self.assertTrue(make_server(FakeResponse(200)).is_up())
        self.assertFalse(make_server(FakeResponse(401)).is_up())
        server = make_server(requests.ConnectionError("refused"), max_retries=1)
        self.assertFalse(server.is_up())

    def testFromConfig(self):
        conf = Config(paths=[], environ={"COUCHSERVICE_URL": "http://couch:5984"})
        server = Server.from_config(conf, session=FakeSession())
        self.assertEqual(server.url, "http://couch:5984/")
        self.assertEqual(server.res.max_retries, conf.max_retries)
        self.assertEqual(server.res.timeout, conf.timeout)


class DocumentTestCase(unittest.TestCase):

    def testCreateDoc(self):
        db, session = make_db(FakeResponse(201, {"ok": True, "id": "abc",
                                                 "rev": "1-x"}))
        resp = db.create_doc({"name": "John Doe", "age": 30})
        self.assertEqual(resp, CreateDocResponse(id="abc", rev="1-x", ok=True))
        req = session.requests[0]
        self.assertEqual((req['method'], req['url']),
                         ('POST', BASE + "couchservice-test"))
        self.assertEqual(session.last_json(), {"name": "John Doe", "age": 30})

    def testCreateDataclassDoc(self):
        db, session = make_db(FakeResponse(201, {"ok": True, "id": "abc",
                                                 "rev": "1-x"}))
        db.create_doc(Person(name="John Doe", age=30))
        self.assertEqual(session.last_json(), {"name": "John Doe", "age": 30})

    def testCreateDocFailure(self):
        db, _ = make_db(FakeResponse(400, {"error": "bad_request"}))
        with self.assertRaises(RequestFailed) as cm:
            db.create_doc({"name": "John Doe"})
        self.assertEqual(cm.exception.status, 400)

    def testCreateThenGet(self):
        db, session = make_db(
            FakeResponse(201, {"ok": True, "id": "abc", "rev": "1-x"}),
            FakeResponse(200, {"_id": "abc", "_rev": "1-x", "name": "John Doe",
                               "age": 30}))
        created = db.create_doc({"name": "John Doe", "age": 30})
        doc = db.get_doc(created.id)
        self.assertEqual(doc, {"_id": "abc", "_rev": "1-x", "name": "John Doe",
                               "age": 30})
        self.assertEqual(session.requests[1]['url'],
                         BASE + "couchservice-test/abc")

    def testGetDocAsDataclass(self):
        db, _ = make_db(FakeResponse(200, {"_id": "abc", "_rev": "1-x",
                                           "name": "John Doe", "age": 30}))
        person = db.get_doc("abc", Person)
        self.assertEqual(person, Person(id="abc", rev="1-x", name="John Doe",
                                        age=30))

    def testGetDocInvalidType(self):
        db, session = make_db()
        self.assertRaises(InvalidArgument, db.get_doc, "abc", list)
        self.assertRaises(InvalidArgument, db.get_doc, "abc", {})
        self.assertEqual(session.requests, [])

    def testGetDocNotFound(self):
        for status in (400, 404):
            db, _ = make_db(FakeResponse(status, {"error": "not_found"}))
            self.assertRaises(DocumentNotFound, db.get_doc, "abc")

    def testGetDocOtherStatus(self):
        db, _ = make_db(FakeResponse(401, {"error": "unauthorized"}))
        with self.assertRaises(RequestFailed) as cm:
            db.get_doc("abc")
        self.assertEqual(cm.exception.status, 401)

    def testGetDocCustomErrorTable(self):
        server = make_server(FakeResponse(400))
        db = Database(server.res, "db", errors={404: DocumentNotFound})
        self.assertRaises(RequestFailed, db.get_doc, "abc")

    def testGetDocInvalidJson(self):
        db, _ = make_db(FakeResponse(200, b"<html>"))
        self.assertRaises(DecodeError, db.get_doc, "abc")

    def testUpdateDocMissingRev(self):
        db, session = make_db()
        self.assertRaises(MissingRevision, db.update_doc, "abc",
                          {"_id": "abc", "name": "John"})
        self.assertRaises(MissingIdentifier, db.update_doc, "abc",
                          {"_rev": "1-x"})
        self.assertRaises(UnsupportedType, db.update_doc, "abc", ["abc"])
        self.assertEqual(session.requests, [])

    def testUpdateDoc(self):
        db, session = make_db(FakeResponse(201, {"ok": True, "id": "abc",
                                                 "rev": "2-y"}))
        resp = db.update_doc("abc", {"_id": "abc", "_rev": "1-x", "age": 31})
        self.assertEqual(resp.rev, "2-y")
        self.assertEqual(len(session.requests), 1)
        req = session.requests[0]
        self.assertEqual((req['method'], req['url']),
                         ('PUT', BASE + "couchservice-test/abc"))
        self.assertEqual(session.last_json(),
                         {"_id": "abc", "_rev": "1-x", "age": 31})

    def testUpdateDataclassDoc(self):
        db, session = make_db(FakeResponse(201, {"ok": True, "id": "abc",
                                                 "rev": "2-y"}))
        db.update_doc("abc", Person(id="abc", rev="1-x", name="John"))
        self.assertEqual(session.last_json(),
                         {"_id": "abc", "_rev": "1-x", "name": "John", "age": 0})

    def testUpdateConflict(self):
        db, session = make_db(FakeResponse(409, {"error": "conflict"}))
        with self.assertRaises(ResourceConflict) as cm:
            db.update_doc("abc", {"_id": "abc", "_rev": "1-old"})
        self.assertEqual(cm.exception.status, 409)
        self.assertEqual(len(session.requests), 1)

    def testDeleteDoc(self):
        db, session = make_db(FakeResponse(200, {"_id": "abc", "_rev": "3-z"}),
                              FakeResponse(200, {"ok": True}))
        db.delete_doc("abc")
        req = session.requests[1]
        self.assertEqual((req['method'], req['url']),
                         ('DELETE', BASE + "couchservice-test/abc?rev=3-z"))

    def testDeleteDocReadFails(self):
        db, session = make_db(FakeResponse(404, {"error": "not_found"}))
        self.assertRaises(DocumentNotFound, db.delete_doc, "abc")
        self.assertEqual(len(session.requests), 1)

    def testDeleteDocFailure(self):
        db, _ = make_db(FakeResponse(200, {"_id": "abc", "_rev": "3-z"}),
                        FakeResponse(500), FakeResponse(500), FakeResponse(500),
                        FakeResponse(500), FakeResponse(500))
        with self.assertRaises(RequestFailed) as cm:
            db.delete_doc("abc")
        self.assertEqual(cm.exception.status, 500)

    def testDocExists(self):
        for status, expected in ((200, True), (304, True), (404, False)):
            db, session = make_db(FakeResponse(status))
            self.assertEqual(db.doc_exists("abc"), expected)
            self.assertEqual(session.requests[0]['method'], 'HEAD')

    def testDocExistsAmbiguous(self):
        db, _ = make_db(FakeResponse(401))
        self.assertRaises(RequestFailed, db.doc_exists, "abc")


@dataclasses.dataclass
class PersonRow:
    id: str = ""
    key: Any = None
    value: Any = None
    doc: Any = None

@dataclasses.dataclass
class People:
    total_rows: int = 0
    rows: List[PersonRow] = dataclasses.field(default_factory=list)

@dataclasses.dataclass
class NoRows:
    total_rows: int = 0


class DesignDocTestCase(unittest.TestCase):

    views = {"by_name": ViewDefinition(map="function(doc) { emit(doc.name, 1); }")}

    def testCreateDesignDoc(self):
        db, session = make_db(FakeResponse(404, {"error": "not_found"}),
                              FakeResponse(201, {"ok": True}))
        db.create_design_doc("people", self.views)
        get, put = session.requests
        self.assertEqual(get['url'], BASE + "couchservice-test/_design/people")
        self.assertEqual((put['method'], put['url']),
                         ('PUT', BASE + "couchservice-test/_design/people"))
        self.assertEqual(session.last_json(), {
            "_id": "_design/people",
            "language": "javascript",
            "autoupdate": True,
            "views": {"by_name": {"map": "function(doc) { emit(doc.name, 1); }"}},
        })

    def testUpdateDesignDocCarriesRev(self):
        current = {"_id": "_design/people", "_rev": "4-d", "language": "javascript",
                   "views": {"old": {"map": "function(doc) {}",
                                     "reduce": "_count"}}}
        db, session = make_db(FakeResponse(200, current),
                              FakeResponse(201, {"ok": True}))
        db.create_design_doc("people", {"by_age": {"map": "function(doc) {}",
                                                   "reduce": "_sum"}})
        body = session.last_json()
        self.assertEqual(body["_rev"], "4-d")
        self.assertEqual(body["views"], {"by_age": {"map": "function(doc) {}",
                                                    "reduce": "_sum"}})

    def testUpdateDesignDocWithCommonJSLib(self):
        current = {"_id": "_design/people", "_rev": "4-d", "language": "javascript",
                   "views": {"lib": {"utils": "exports.f = 1;"},
                             "old": {"map": "function(doc) {}"}}}
        db, session = make_db(FakeResponse(200, current),
                              FakeResponse(201, {"ok": True}))
        db.create_design_doc("people", self.views)
        self.assertEqual(len(session.requests), 2)
        self.assertEqual(session.requests[1]['method'], 'PUT')
        self.assertEqual(session.last_json()["_rev"], "4-d")

    def testDesignDocReadFailurePropagates(self):
        db, session = make_db(FakeResponse(401, {"error": "unauthorized"}))
        self.assertRaises(RequestFailed, db.create_design_doc, "people", self.views)
        self.assertEqual(len(session.requests), 1)

    def testDesignDocConflict(self):
        db, _ = make_db(FakeResponse(404), FakeResponse(409, {"error": "conflict"}))
        self.assertRaises(ResourceConflict, db.create_design_doc, "people",
                          self.views)

    def testViewDefinitionNeedsMap(self):
        db, session = make_db()
        self.assertRaises(InvalidArgument, db.create_design_doc, "people",
                          {"by_name": {"reduce": "_count"}})
        self.assertEqual(session.requests, [])

    def testDesignDocumentDecoding(self):
        from couchservice.shapes import decode
        design = decode(DesignDocument, {"_id": "_design/a", "_rev": "1-a",
                                         "views": {"v": {"map": "m"}}})
        self.assertEqual(design.views, {"v": ViewDefinition(map="m")})


class ViewTestCase(unittest.TestCase):

    result = {
        "total_rows": 1, "offset": 0,
        "rows": [{"id": "abc", "key": "John", "value": 1,
                  "doc": {"_id": "abc", "name": "John"}}],
    }

    def testViewGet(self):
        db, session = make_db(FakeResponse(200, self.result))
        resp = db.view("people", "by_name",
                       ViewParams(key="John", include_docs=True, limit=0))
        self.assertIsInstance(resp, ViewResponse)
        self.assertEqual(resp.total_rows, 1)
        self.assertEqual(resp.rows[0].id, "abc")
        self.assertEqual(resp.rows[0].doc["name"], "John")
        req = session.requests[0]
        self.assertEqual(req['method'], 'GET')
        self.assertEqual(req['url'], BASE + "couchservice-test/_design/people/"
                         "_view/by_name?include_docs=true&key=%22John%22")

    def testViewIntoCallerType(self):
        db, _ = make_db(FakeResponse(200, self.result))
        resp = db.view("people", "by_name", result_type=People)
        self.assertEqual(resp, People(total_rows=1, rows=[PersonRow(
            id="abc", key="John", value=1, doc={"_id": "abc", "name": "John"})]))

    def testViewKeysArePosted(self):
        db, session = make_db(FakeResponse(200, self.result))
        db.view("people", "by_name", {"keys": ["John", "Jane"], "limit": 5})
        req = session.requests[0]
        self.assertEqual(req['method'], 'POST')
        self.assertTrue(req['url'].endswith("/_view/by_name?limit=5"))
        self.assertEqual(session.last_json(), {"keys": ["John", "Jane"]})

    def testViewInvalidResultType(self):
        db, session = make_db()
        self.assertRaises(MissingRowsField, db.view, "people", "by_name",
                          result_type=NoRows)
        self.assertEqual(session.requests, [])

    def testViewFailure(self):
        db, _ = make_db(FakeResponse(404, {"error": "not_found"}))
        with self.assertRaises(RequestFailed) as cm:
            db.view("people", "missing")
        self.assertEqual(cm.exception.status, 404)


if __name__ == '__main__':
    unittest.main()
