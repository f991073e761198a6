"""test_lambda_function.py — Mock-based integration tests for message_api.

Covers API Gateway proxy and direct invocations end to end through the
dispatcher and collection store, with S3 replaced by an in-memory fake.
All locally runnable without AWS credentials.

Run: python3 -m pytest test_lambda_function.py -v
"""

from __future__ import annotations

import base64
import importlib.util
import json
import os
import sys
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(__file__))

import config
from collection_store import CollectionStore
from dispatcher import OperationDispatcher
from errors import ConfigurationError
from test_collection_store import FakeS3

_LAMBDA_PATH = os.path.join(os.path.dirname(__file__), "lambda_function.py")


def _load_module(name="message_api", bucket="test-bucket"):
    with patch.object(config, "S3_BUCKET_NAME", bucket):
        return _exec_module(name)


def _exec_module(name):
    spec = importlib.util.spec_from_file_location(name, _LAMBDA_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


message_api = _load_module()


def _make_event(method="POST", path="/", body=None, query_params=None, base64_body=False):
    """Build a mock API Gateway v2 event."""
    event = {
        "requestContext": {"http": {"method": method, "path": path}},
        "headers": {"content-type": "application/json"},
        "rawPath": path,
        "queryStringParameters": query_params,
    }
    if body is not None:
        raw = json.dumps(body) if isinstance(body, (dict, list)) else body
        if base64_body:
            raw = base64.b64encode(raw.encode("utf-8")).decode("ascii")
            event["isBase64Encoded"] = True
        event["body"] = raw
    return event


class _HandlerTestCase(unittest.TestCase):
    def setUp(self):
        self.s3 = FakeS3()
        self.dispatcher = OperationDispatcher(CollectionStore(message_api.BUCKET_NAME, self.s3))
        patcher = patch.object(message_api, "_get_dispatcher", return_value=self.dispatcher)
        patcher.start()
        self.addCleanup(patcher.stop)

    def invoke(self, event):
        resp = message_api.lambda_handler(event, None)
        return resp, json.loads(resp["body"]) if resp["body"] else None


class TransportTests(_HandlerTestCase):
    def test_options_returns_204_with_cors(self):
        resp = message_api.lambda_handler(_make_event(method="OPTIONS"), None)
        self.assertEqual(resp["statusCode"], 204)
        self.assertIn("Access-Control-Allow-Origin", resp["headers"])

    def test_root_get_returns_banner(self):
        resp, body = self.invoke(_make_event(method="GET"))
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(body["message"], config.SERVICE_BANNER)
        self.assertEqual(self.s3.calls, [])

    def test_invalid_json_returns_400(self):
        resp, body = self.invoke(_make_event(body="{not json"))
        self.assertEqual(resp["statusCode"], 400)
        self.assertEqual(body["error"], "Invalid JSON body")
        self.assertEqual(body["error_envelope"]["code"], "INVALID_INPUT")

    def test_json_array_body_returns_400(self):
        resp, _body = self.invoke(_make_event(body=[{"action": "get"}]))
        self.assertEqual(resp["statusCode"], 400)

    def test_responses_are_json(self):
        resp, _body = self.invoke(_make_event(body={"action": "get", "filename": "file1"}))
        self.assertEqual(resp["headers"]["Content-Type"], "application/json")


class DispatchThroughHandlerTests(_HandlerTestCase):
    def test_add_then_get(self):
        add = {"action": "add", "filename": "file1", "sender": "A", "receiver": "B",
               "message": "hi", "date": "2024-01-01"}
        resp, created = self.invoke(_make_event(body=add))
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(created, {"id": 1, "sender": "A", "receiver": "B", "message": "hi", "date": "2024-01-01"})

        resp, listed = self.invoke(_make_event(body={"action": "get", "filename": "file1"}))
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(listed, [created])

    def test_base64_body(self):
        resp, listed = self.invoke(
            _make_event(body={"action": "get", "filename": "file1"}, base64_body=True)
        )
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(listed, [])

    def test_get_from_query_string(self):
        resp, listed = self.invoke(
            _make_event(method="GET", path="/messages", query_params={"action": "get", "filename": "weird name"})
        )
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(listed, [])
        self.assertEqual(self.s3.calls, [("head_object", "weird name.json")])

    def test_direct_invocation(self):
        resp, listed = self.invoke({"action": "get", "filename": "file1"})
        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(listed, [])

    def test_missing_filename_returns_400(self):
        resp, body = self.invoke(_make_event(body={"action": "get"}))
        self.assertEqual(resp["statusCode"], 400)
        self.assertEqual(body["error"], "Missing 'action' or 'filename'")

    def test_update_returns_501(self):
        resp, body = self.invoke(_make_event(body={"action": "update", "filename": "file1", "id": 1}))
        self.assertEqual(resp["statusCode"], 501)
        self.assertEqual(body["error_envelope"]["code"], "NOT_IMPLEMENTED")
        self.assertFalse(body["error_envelope"]["retryable"])

    def test_data_integrity_failure_returns_500(self):
        self.s3.seed(message_api.BUCKET_NAME, "file1.json", b"[1, 2")
        resp, body = self.invoke(_make_event(body={"action": "get", "filename": "file1"}))
        self.assertEqual(resp["statusCode"], 500)
        self.assertEqual(body["error_envelope"]["code"], "DATA_INTEGRITY_ERROR")

    def test_unexpected_exception_returns_500(self):
        with patch.object(self.dispatcher, "dispatch", side_effect=RuntimeError("boom")):
            resp, body = self.invoke(_make_event(body={"action": "get", "filename": "file1"}))
        self.assertEqual(resp["statusCode"], 500)
        self.assertEqual(body["error"], "Internal server error")


class StartupTests(unittest.TestCase):
    def test_missing_bucket_fails_cold_start(self):
        with self.assertRaises(ConfigurationError):
            _load_module("message_api_no_bucket", bucket="")

    def test_dispatcher_is_built_once_from_config(self):
        module = _load_module("message_api_singleton")
        first = module._get_dispatcher()
        self.assertIs(first, module._get_dispatcher())
        self.assertEqual(first.store.bucket, module.BUCKET_NAME)
        self.assertEqual(first.store.key_for(" x "), "x" + config.COLLECTION_KEY_SUFFIX)

    def test_env_helpers(self):
        with patch.dict(os.environ, {"FLAG_ON": "Yes", "NUM_BAD": "abc", "NUM_NEG": "-3"}):
            self.assertTrue(config._env_flag("FLAG_ON"))
            self.assertFalse(config._env_flag("FLAG_UNSET_XYZ"))
            self.assertEqual(config._env_int("NUM_BAD", 4), 4)
            self.assertEqual(config._env_int("NUM_NEG", 4, minimum=0), 0)


if __name__ == "__main__":
    unittest.main()
