from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from docprovider.config import ProviderConfig
from docprovider.fs.provider import DocumentProvider
from docprovider.logging import ndjson


class LogEventTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._env = mock.patch.dict(os.environ, {"DOCPROVIDER_LOG_DIR": self._tmp.name})
        self._env.start()

    def tearDown(self) -> None:
        self._env.stop()
        self._tmp.cleanup()

    def records(self) -> list[dict]:
        return [json.loads(ln) for ln in ndjson.read_tail(max_lines=100)]

    def test_record_carries_operation_and_ids(self) -> None:
        ndjson.log_event(level="info", op="documents.rename", documentId="root/a.txt", parentId="root/", resultId="root/b.txt")
        ndjson.log_event(level="warn", op="provider.reload")

        first, second = self.records()
        self.assertEqual(first["op"], "documents.rename")
        self.assertEqual(
            (first["documentId"], first["parentId"], first["resultId"]),
            ("root/a.txt", "root/", "root/b.txt"),
        )
        self.assertEqual(set(second), {"ts", "level", "op"})

    def test_long_values_are_clipped(self) -> None:
        ndjson.log_event(level="error", op="documents.delete", data={"error": "a" * 2000})
        rec = self.records()[0]
        self.assertEqual(len(rec["data"]["error"]), ndjson.MAX_VALUE_LEN + 3)

    def test_read_tail_limits_lines(self) -> None:
        for i in range(5):
            ndjson.log_event(level="info", op=f"e{i}")
        lines = ndjson.read_tail(max_lines=2)
        self.assertEqual([json.loads(ln)["op"] for ln in lines], ["e3", "e4"])

    def test_read_tail_without_log_file(self) -> None:
        self.assertEqual(ndjson.read_tail(max_lines=5), [])

    def test_provider_mutations_log_parent_and_result(self) -> None:
        provider = DocumentProvider(ProviderConfig(root=Path(self._tmp.name) / "files"))
        (Path(self._tmp.name) / "files" / "d").mkdir()
        new_id = provider.create_document("root/d", "text/plain", "a.txt")
        renamed = provider.rename_document(new_id, "b.txt")
        provider.delete_document(renamed)

        by_op = {r["op"]: r for r in self.records()}
        self.assertEqual(by_op["documents.create"]["parentId"], "root/d")
        self.assertEqual(by_op["documents.create"]["resultId"], "root/d/a.txt")
        self.assertEqual(by_op["documents.rename"]["resultId"], "root/d/b.txt")
        self.assertEqual(by_op["documents.delete"]["documentId"], "root/d/b.txt")
        self.assertEqual(by_op["documents.delete"]["parentId"], "root/d")
