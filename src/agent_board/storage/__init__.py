"""Persistent storage for board documents."""

from .document_store import PROJECTS_COLLECTION, DocumentStore, tasks_collection

__all__ = ["DocumentStore", "PROJECTS_COLLECTION", "tasks_collection"]
