from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

from docprovider.fs.errors import DocumentFatal, DocumentNotFound


ROOT_ID = "root"

PathLike = Union[str, "os.PathLike[str]"]

_SEPARATORS = re.compile(r"/+")


def split_path(path: str) -> list[str]:
    # Runs of "/" count as one separator; empty segments are dropped.
    return [seg for seg in _SEPARATORS.split(path) if seg]


def relativize(base: str, target: str) -> str:
    """
    Shortest relative path from directory `base` to `target`.

    Examples:
      relativize("/root/", "/root/")     -> ""
      relativize("/root/", "/root/a/b")  -> "a/b"
      relativize("/root/", "/root/a/b/") -> "a/b/"
      relativize("/root/x", "/root/a")   -> "../a"
    """
    bases = split_path(base)
    targets = split_path(target)

    common = 0
    while common < len(bases) and common < len(targets) and bases[common] == targets[common]:
        common += 1

    out = "../" * (len(bases) - common) + "/".join(targets[common:])
    if target.endswith("/") and out and not out.endswith("/"):
        out += "/"
    return out


def is_descendant_id(parent_id: str, document_id: str) -> bool:
    """
    Segment-wise prefix test: "root/a/bc" is not under "root/a/b".
    A document counts as part of its own subtree.
    """
    parent = split_path(parent_id)
    child = split_path(document_id)
    return len(child) >= len(parent) and child[: len(parent)] == parent


class IdentifierCodec:
    """
    Maps absolute paths under `root` to "root/<relative path>" ids and back.
    """

    def __init__(self, root: PathLike) -> None:
        self.root = Path(os.path.abspath(os.fspath(root)))

    def encode(self, path: PathLike) -> str:
        target = os.path.abspath(os.fspath(path))
        rel = relativize(str(self.root), target)
        if rel.startswith("../"):
            raise DocumentFatal(f"Path {target} is outside the root directory {self.root}")
        return f"{ROOT_ID}/{rel}"

    def resolve(self, document_id: str) -> Path:
        """
        Lexical id -> path translation without the existence check.
        """
        if document_id != ROOT_ID and not document_id.startswith(ROOT_ID + "/"):
            raise DocumentNotFound(f"Unknown document id: {document_id}")
        rest = document_id[len(ROOT_ID) :].lstrip("/")
        candidate = os.path.abspath(os.path.join(str(self.root), rest))
        try:
            common = os.path.commonpath([str(self.root), candidate])
        except ValueError as e:
            raise DocumentNotFound(f"Invalid document id {document_id}: {e}") from e
        if common != str(self.root):
            raise DocumentNotFound(f"Document id escapes the root directory: {document_id}")
        return Path(candidate)

    def decode(self, document_id: str) -> Path:
        p = self.resolve(document_id)
        if not p.exists():
            raise DocumentNotFound(f"File {document_id} does not exist.")
        return p

    def canonical(self, document_id: str) -> str:
        # "root", "root/", "root//a/" all collapse to one key.
        return self.encode(self.resolve(document_id))
