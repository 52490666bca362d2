# -*- coding: utf-8 -*-
#
# This file is part of couchservice released under the Apache 2 license.
# See the NOTICE for more information.

import json
import logging
import threading
import time
import urllib.parse

import requests

from couchservice import __version__
from couchservice.errors import Cancelled, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = "couchservice/%s" % __version__
DEFAULT_MAX_RETRIES = 5
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_TIMEOUT = 30.0


class Deadline(object):
    """ Deadline and cancellation token of one call.

    @param timeout: float, seconds the whole call (all attempts and
    retry delays included) may take. None means no limit.
    @param event: `threading.Event`, set it from another thread to
    cancel the call.
    """

    def __init__(self, timeout=None, event=None):
        self.expires = None
        if timeout is not None:
            self.expires = time.monotonic() + timeout
        if event is None:
            event = threading.Event()
        self.event = event

    def remaining(self):
        if self.expires is None:
            return None
        return max(0.0, self.expires - time.monotonic())

    def cancel(self):
        self.event.set()

    def check(self):
        if self.event.is_set():
            raise Cancelled("request cancelled")
        if self.expires is not None and time.monotonic() >= self.expires:
            raise Cancelled("deadline exceeded")

    def wait(self, seconds):
        """ sleep up to `seconds`, waking up early on cancellation """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self.event.wait(seconds)
        self.check()


class CouchDBResource(object):
    """ HTTP resource bound to the base url of a CouchDB node.

    Every request is retried on connection errors and on 5xx answers,
    up to `max_retries` attempts separated by `retry_delay` seconds.
    `timeout` is handed to `requests` as the connect and read timeout of
    an attempt: it bounds the wait for the connection and for each chunk
    of the answer, not the whole attempt. A server sending its body
    slowly can hold an attempt longer than `timeout`. Other statuses are
    returned as is, interpreting them is left to the caller.

    A session created here is owned by the resource and closed by
    `close()`; a session passed in is left to its owner.
    """

    def __init__(self, uri="http://127.0.0.1:5984/", max_retries=DEFAULT_MAX_RETRIES,
            retry_delay=DEFAULT_RETRY_DELAY, timeout=DEFAULT_TIMEOUT, headers=None,
            session=None):
        uri_ = urllib.parse.urlsplit(uri)
        if uri_.scheme != "http" and uri_.scheme != "https":
            raise ValueError('Invalid uri %r' % uri)
        if max_retries < 1:
            raise ValueError("max_retries should be at least 1")

        self.owns_session = session is None
        if session is None:
            session = requests.Session()
        if uri_.username is not None:
            session.auth = (urllib.parse.unquote(uri_.username),
                            urllib.parse.unquote(uri_.password or ""))
            netloc = uri_.netloc.rpartition("@")[2]
            uri = urllib.parse.urlunsplit((uri_.scheme, netloc, uri_.path,
                                           uri_.query, uri_.fragment))

        headers = dict(headers or {})
        headers.setdefault('Accept', 'application/json')
        headers.setdefault('User-Agent', USER_AGENT)

        self.uri = add_slash_if_needed(uri)
        self.headers = headers
        self.session = session
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.uri)

    def close(self):
        if self.owns_session:
            self.session.close()

    def head(self, path=None, headers=None, deadline=None, **params):
        return self.request('HEAD', path=path, headers=headers,
                            deadline=deadline, **params)

    def get(self, path=None, headers=None, deadline=None, **params):
        return self.request('GET', path=path, headers=headers,
                            deadline=deadline, **params)

    def delete(self, path=None, headers=None, deadline=None, **params):
        return self.request('DELETE', path=path, headers=headers,
                            deadline=deadline, **params)

    def post(self, path=None, payload=None, headers=None, deadline=None, **params):
        return self.request('POST', path=path, payload=payload, headers=headers,
                            deadline=deadline, **params)

    def put(self, path=None, payload=None, headers=None, deadline=None, **params):
        return self.request('PUT', path=path, payload=payload, headers=headers,
                            deadline=deadline, **params)

    def request(self, method, path=None, payload=None, headers=None,
            deadline=None, **params):
        """ Perform an HTTP call to the couchdb server.

        @param method: str, HTTP verb
        @param path: str, already escaped path relative to the base uri
        @param payload: any object that can be serialized to JSON
        @param headers: dict, additional headers
        @param deadline: `Deadline`, caller deadline/cancellation
        @param params: query string parameters, already encoded

        @return: tuple (status_code, body) where body is bytes
        """
        url = make_uri(self.uri, path, **params)
        _headers = self.headers.copy()
        _headers.update(headers or {})

        body = None
        if payload is not None:
            body = json.dumps(payload).encode('utf-8')
            _headers['Content-Type'] = 'application/json'

        status_code, content = None, None
        for attempt in range(1, self.max_retries + 1):
            if deadline is not None:
                deadline.check()
            try:
                resp = self.session.request(method, url, data=body,
                            headers=_headers, timeout=self._attempt_timeout(deadline))
                content = resp.content
            except requests.RequestException as e:
                if deadline is not None:
                    deadline.check()
                if attempt == self.max_retries:
                    raise TransportError("%s %s failed after %s attempts: %s" % (
                            method, url, attempt, e), attempts=attempt) from e
                logger.warning("%s %s failed (attempt %s/%s): %s", method, url,
                               attempt, self.max_retries, e)
                self._wait(deadline)
                continue

            status_code = resp.status_code
            logger.debug("%s %s -> %s", method, url, status_code)
            if status_code < 500:
                return status_code, content

            if attempt < self.max_retries:
                logger.warning("%s %s returned %s (attempt %s/%s)", method, url,
                               status_code, attempt, self.max_retries)
                self._wait(deadline)
        return status_code, content

    def _attempt_timeout(self, deadline):
        if deadline is None:
            return self.timeout
        remaining = deadline.remaining()
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def _wait(self, deadline):
        if deadline is None:
            time.sleep(self.retry_delay)
        else:
            deadline.wait(self.retry_delay)


def add_slash_if_needed(s):
    if not s or not s.endswith("/"):
        return s + "/"
    return s


def url_quote(s, safe='/:'):
    """URL encode a single string."""
    if not isinstance(s, str):
        s = str(s)
    return urllib.parse.quote(s, safe=safe)


def url_encode(params):
    return urllib.parse.urlencode(params, quote_via=urllib.parse.quote, safe='')


def escape_docid(docid):
    if docid.startswith('/'):
        docid = docid[1:]
    if docid.startswith('_design/'):
        docid = '_design/%s' % url_quote(docid[8:], safe='')
    else:
        docid = url_quote(docid, safe='')
    return docid


def make_uri(base, *path, **qs):
    """Assemble a uri based on a base, any number of already escaped path
    segments, and query string parameters. None values are skipped.
    """
    segments = [s.strip('/') for s in path if s]
    uri = base
    if segments:
        uri = add_slash_if_needed(base) + "/".join(s for s in segments if s)

    params = [(k, v) for k, v in qs.items() if v is not None]
    if params:
        uri = "%s?%s" % (uri, url_encode(params))
    return uri
