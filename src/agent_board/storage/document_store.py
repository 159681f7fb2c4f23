"""JSON document store for projects and tasks."""

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List

from ..utils.atomic_io import atomic_write_text
from ..utils.validators import validate_identifier

logger = logging.getLogger(__name__)

PROJECTS_COLLECTION = "projects"


def tasks_collection(project_id: str) -> str:
    return f"tasks-{project_id}"


class DocumentStore:
    """
    Named collections of JSON documents, one file per collection.

    Collections are loaded lazily and cached; set() only changes memory,
    save() writes every modified collection to disk atomically.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        self._dirty: set = set()
        self._lock = threading.Lock()

    def _path(self, collection: str) -> Path:
        return self.root / f"{validate_identifier(collection, 'collection')}.json"

    def _load(self, collection: str) -> List[Dict[str, Any]]:
        # Caller must hold self._lock
        if collection in self._collections:
            return self._collections[collection]

        path = self._path(collection)
        docs: List[Dict[str, Any]] = []
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ValueError(f"Corrupt collection file {path}: {e}") from e
            if not isinstance(data, list):
                raise ValueError(f"Collection file {path} must contain a JSON array")
            docs = data

        self._collections[collection] = docs
        return docs

    def get(self, collection: str) -> List[Dict[str, Any]]:
        """Copy of every document in collection (empty when it doesn't exist yet)."""
        with self._lock:
            return copy.deepcopy(self._load(collection))

    def set(self, collection: str, docs: List[Dict[str, Any]]) -> None:
        """Replace the collection's contents. Call save() to persist."""
        with self._lock:
            self._path(collection)
            self._collections[collection] = copy.deepcopy(list(docs))
            self._dirty.add(collection)

    def save(self) -> None:
        """Write modified collections to disk."""
        with self._lock:
            pending = {name: copy.deepcopy(self._collections[name]) for name in self._dirty}
            self._dirty.clear()

        for name, docs in pending.items():
            atomic_write_text(self._path(name), json.dumps(docs, indent=2, default=str))
            logger.debug(f"Saved {len(docs)} document(s) to {name}")

    def find(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """
        Document with the given id.

        Raises:
            KeyError: If no document in collection has that id
        """
        for doc in self.get(collection):
            if doc.get("id") == doc_id:
                return doc
        raise KeyError(f"No document '{doc_id}' in {collection}")

    def upsert(self, collection: str, doc: Dict[str, Any]) -> None:
        """Insert doc, or replace the document with the same id."""
        with self._lock:
            docs = self._load(collection)
            for i, existing in enumerate(docs):
                if existing.get("id") == doc.get("id"):
                    docs[i] = copy.deepcopy(doc)
                    break
            else:
                docs.append(copy.deepcopy(doc))
            self._dirty.add(collection)
