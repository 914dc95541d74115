"""
Host Module

Interfaces to the host application's state, plus reference implementations.
"""

from .base import (
    Document, DocumentStore, SearchIndex, FileStorage, FileEntry,
    MacroRunner, SceneManager, EncounterTracker, RosterChange, HostServices
)
from .filters import parse_filter_string, normalize_filters, matches_all_filters
from .memory import InMemoryDocumentStore, InMemorySearchIndex, InMemoryMacroRunner, InMemorySceneManager
from .encounters import Combatant, Encounter, InMemoryEncounterTracker
from .storage import LocalFileStorage


def create_memory_services(storage_root: str) -> HostServices:
    """In-memory documents, search, macros, scenes and encounters plus disk storage under storage_root"""
    documents = InMemoryDocumentStore()
    return HostServices(
        documents=documents,
        search=InMemorySearchIndex(documents),
        files=LocalFileStorage(storage_root),
        macros=InMemoryMacroRunner(documents),
        scenes=InMemorySceneManager(documents),
        encounters=InMemoryEncounterTracker(documents)
    )


__all__ = [
    "Document",
    "DocumentStore",
    "SearchIndex",
    "FileStorage",
    "FileEntry",
    "MacroRunner",
    "SceneManager",
    "EncounterTracker",
    "RosterChange",
    "HostServices",
    "parse_filter_string",
    "normalize_filters",
    "matches_all_filters",
    "InMemoryDocumentStore",
    "InMemorySearchIndex",
    "InMemoryMacroRunner",
    "InMemorySceneManager",
    "Combatant",
    "Encounter",
    "InMemoryEncounterTracker",
    "LocalFileStorage",
    "create_memory_services"
]
