from __future__ import annotations


class DocumentError(RuntimeError):
    pass


class DocumentNotFound(DocumentError):
    """
    Root directory is not configured, or the document id does not name an existing entry.
    """


class DocumentIOError(DocumentError):
    """
    An OS-level create/delete/rename failed. Recursive deletes are not rolled back.
    """


class DocumentFatal(DocumentError):
    """
    Identifier codec invariant violated (a path outside the root reached encode).
    Aborts the current request only.
    """


class DocumentCancelled(DocumentError):
    pass
