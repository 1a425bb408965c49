from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from docprovider.fs.errors import DocumentFatal, DocumentNotFound
from docprovider.fs.ids import ROOT_ID, IdentifierCodec, is_descendant_id, relativize, split_path


class SplitPathTests(unittest.TestCase):
    def test_runs_of_separators_collapse_and_empty_segments_drop(self) -> None:
        self.assertEqual(split_path("//a///b/"), ["a", "b"])
        self.assertEqual(split_path("/"), [])
        self.assertEqual(split_path(""), [])
        self.assertEqual(split_path("a"), ["a"])


class RelativizeTests(unittest.TestCase):
    def test_same_directory_is_empty(self) -> None:
        self.assertEqual(relativize("/root/", "/root/"), "")
        self.assertEqual(relativize("/root", "/root"), "")

    def test_nested_target(self) -> None:
        self.assertEqual(relativize("/root/", "/root/a/b"), "a/b")
        self.assertEqual(relativize("/root", "/root/a/b"), "a/b")

    def test_trailing_separator_is_kept(self) -> None:
        self.assertEqual(relativize("/root", "/root/a/b/"), "a/b/")

    def test_redundant_separators_are_ignored(self) -> None:
        self.assertEqual(relativize("//root//", "/root///a//b"), "a/b")

    def test_divergent_target_climbs_with_parent_tokens(self) -> None:
        self.assertEqual(relativize("/root/x/y", "/root/a"), "../../a")
        self.assertEqual(relativize("/root/x", "/other"), "../../other")

    def test_result_rejoins_onto_base(self) -> None:
        base = "/data/files"
        for target in ("/data/files/a", "/data/files/a/b/c.txt", "/data/files/dir/"):
            rel = relativize(base, target)
            self.assertFalse(rel.startswith("/"))
            self.assertEqual(os.path.join(base, rel).rstrip("/"), target.rstrip("/"))

    def test_reapplying_to_own_output_is_stable(self) -> None:
        base = "/data/files"
        rel = relativize(base, "/data/files/a/b/")
        self.assertEqual(relativize(base, f"{base}/{rel}"), rel)


class IdentifierCodecTests(unittest.TestCase):
    def test_round_trip_for_paths_inside_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            nested = root / "saves" / "game.sav"
            nested.parent.mkdir()
            nested.write_bytes(b"x")
            codec = IdentifierCodec(root)

            for p in (root, root / "saves", nested):
                self.assertEqual(codec.decode(codec.encode(p)), p)

            self.assertEqual(codec.encode(nested), "root/saves/game.sav")
            self.assertEqual(codec.encode(root), "root/")

    def test_decode_tolerates_trailing_and_redundant_separators(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "a").mkdir()
            codec = IdentifierCodec(root)

            self.assertEqual(codec.decode("root//a/"), root / "a")
            self.assertEqual(codec.decode(ROOT_ID), root)
            self.assertEqual(codec.canonical("root"), "root/")
            self.assertEqual(codec.canonical("root//a/"), "root/a")

    def test_decode_missing_path_is_not_found(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            codec = IdentifierCodec(tmp)
            with self.assertRaises(DocumentNotFound):
                codec.decode("root/nope.txt")

    def test_encode_is_not_existence_checked(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            codec = IdentifierCodec(root)
            self.assertEqual(codec.encode(root / "later.txt"), "root/later.txt")

    def test_decode_rejects_foreign_tokens_and_escapes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            codec = IdentifierCodec(tmp)
            with self.assertRaises(DocumentNotFound):
                codec.decode("rootx/a")
            with self.assertRaises(DocumentNotFound):
                codec.decode("other/a")
            with self.assertRaises(DocumentNotFound):
                codec.decode("root/../..")

    def test_encode_outside_root_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve() / "inner"
            root.mkdir()
            codec = IdentifierCodec(root)
            with self.assertRaises(DocumentFatal):
                codec.encode(root.parent / "sibling")


class DescendantTests(unittest.TestCase):
    def test_segment_wise_prefix(self) -> None:
        self.assertTrue(is_descendant_id("root/a/b", "root/a/b/c"))
        self.assertTrue(is_descendant_id("root", "root/a"))
        self.assertTrue(is_descendant_id("root/", "root/a"))
        self.assertFalse(is_descendant_id("root/a/b", "root/a/bc"))
        self.assertFalse(is_descendant_id("root/a/b/c", "root/a/b"))

    def test_document_is_in_its_own_subtree(self) -> None:
        self.assertTrue(is_descendant_id("root/a", "root/a/"))
