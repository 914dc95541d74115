#!/usr/bin/env python3

"""
In-Memory Host Collaborators

Reference implementations of DocumentStore, SearchIndex, MacroRunner and
SceneManager that keep everything in process memory. Used by the command
line demo host and by the tests; a real host application provides its own.
"""

import copy
import inspect
import logging
import uuid as uuid_lib
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.functional import Result, Success, Failure, from_async_callable, merge_configs
from .base import Document, DocumentStore, MacroRunner, SceneManager, SearchIndex
from .filters import matches_all_filters

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_TYPES = frozenset({"Actor", "Item", "Scene", "JournalEntry", "Macro", "RollTable", "Token"})


class InMemoryDocumentStore(DocumentStore):
    """Documents keyed by "<Type>.<id>" uuids"""

    def __init__(self, document_types: Iterable[str] = DEFAULT_DOCUMENT_TYPES):
        self.document_types = frozenset(document_types)
        self._documents: Dict[str, Document] = {}
        self._folders: List[Dict[str, Any]] = []
        self._selection: List[str] = []

    def add_folder(self, name: str, folder_type: str, parent: Optional[str] = None) -> Dict[str, Any]:
        folder = {
            "id": uuid_lib.uuid4().hex[:16],
            "name": name,
            "type": folder_type,
            "parent": parent
        }
        folder["uuid"] = f"Folder.{folder['id']}"
        self._folders.append(folder)
        return dict(folder)

    async def get(self, uuid: str) -> Result[Optional[Document], str]:
        document = self._documents.get(uuid)
        return Success(copy.deepcopy(document) if document is not None else None)

    async def query(self, document_type: Optional[str] = None,
                    filters: Optional[Dict[str, str]] = None) -> Result[List[Document], str]:
        documents = [
            copy.deepcopy(document) for document in self._documents.values()
            if (document_type is None or document["documentType"] == document_type)
            and matches_all_filters(document, filters or {})
        ]
        return Success(documents)

    async def create(self, document_type: str, data: Dict[str, Any],
                     folder: Optional[str] = None) -> Result[Document, str]:
        if document_type not in self.document_types:
            return Failure(f"Invalid entity type: {document_type}")
        if not isinstance(data, dict):
            return Failure("Entity data must be an object")

        document_id = uuid_lib.uuid4().hex[:16]
        document = {
            **copy.deepcopy(data),
            "id": document_id,
            "uuid": f"{document_type}.{document_id}",
            "documentType": document_type,
            "folder": folder
        }
        document.setdefault("name", f"New {document_type}")
        self._documents[document["uuid"]] = document

        logger.debug(f"Created {document['uuid']}")
        return Success(copy.deepcopy(document))

    async def update(self, uuid: str, changes: Dict[str, Any]) -> Result[Document, str]:
        document = self._documents.get(uuid)
        if document is None:
            return Failure(f"Entity not found: {uuid}")

        protected = {"id", "uuid", "documentType"}
        allowed = {k: v for k, v in changes.items() if k not in protected}
        updated = merge_configs(document, copy.deepcopy(allowed))
        self._documents[uuid] = updated
        return Success(copy.deepcopy(updated))

    async def delete(self, uuid: str) -> Result[bool, str]:
        if self._documents.pop(uuid, None) is None:
            return Failure(f"Entity not found: {uuid}")
        if uuid in self._selection:
            self._selection.remove(uuid)
        return Success(True)

    async def structure(self) -> Result[Dict[str, List[Dict[str, Any]]], str]:
        collections = sorted({document["documentType"] for document in self._documents.values()})
        return Success({
            "folders": [dict(folder) for folder in self._folders],
            "collections": [
                {
                    "id": name,
                    "name": name,
                    "size": sum(1 for d in self._documents.values() if d["documentType"] == name)
                }
                for name in collections
            ]
        })

    async def select(self, uuids: List[str], overwrite: bool = False) -> Result[List[str], str]:
        matching = [uuid for uuid in uuids if uuid in self._documents]
        if not matching:
            return Failure("No matching entities found")

        if overwrite:
            self._selection = []
        for uuid in matching:
            if uuid not in self._selection:
                self._selection.append(uuid)
        return Success(list(self._selection))

    async def selected(self) -> Result[List[Document], str]:
        return Success([copy.deepcopy(self._documents[uuid]) for uuid in self._selection])


class InMemorySearchIndex(SearchIndex):
    """
    Case-insensitive name search over a DocumentStore

    Every search reads the store, so documents created, updated or deleted
    after build() are reflected immediately.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def build(self) -> Result[int, str]:
        documents = await self._store.query()
        if documents.is_failure():
            return Failure(f"Index build failed: {documents.error}")

        self._ready = True
        logger.info(f"Search index ready over {len(documents.value)} documents")
        return Success(len(documents.value))

    async def search(self, query: str, limit: int = 200,
                     filters: Optional[Dict[str, str]] = None) -> Result[List[Document], str]:
        if not self._ready:
            return Failure("Search index not ready")

        documents = await self._store.query(filters=filters)
        if documents.is_failure():
            return Failure(f"Search failed: {documents.error}")

        needle = query.strip().lower()
        prefix_hits, other_hits = [], []
        for document in documents.value:
            name = str(document.get("name", "")).lower()
            if not needle or name.startswith(needle):
                prefix_hits.append(document)
            elif needle in name:
                other_hits.append(document)

        return Success((prefix_hits + other_hits)[:limit])


MacroFunction = Callable[[Dict[str, Any]], Any]


class InMemoryMacroRunner(MacroRunner):
    """
    Macro documents of a DocumentStore bound to Python callables

    A macro can only be executed once a callable is bound to its uuid; the
    callable receives the request's args and may be a coroutine function.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._bound: Dict[str, MacroFunction] = {}

    def bind(self, uuid: str, func: MacroFunction) -> None:
        self._bound[uuid] = func

    async def macros(self) -> Result[List[Document], str]:
        documents = await self._store.query("Macro")
        if documents.is_failure():
            return documents

        return Success([
            {
                "uuid": doc["uuid"],
                "id": doc["id"],
                "name": doc.get("name"),
                "type": doc.get("type", "script"),
                "author": doc.get("author"),
                "command": doc.get("command", ""),
                "img": doc.get("img"),
                "scope": doc.get("scope", "global"),
                "canExecute": doc["uuid"] in self._bound
            }
            for doc in documents.value
        ])

    async def execute(self, uuid: str, args: Optional[Dict[str, Any]] = None) -> Result[Any, str]:
        found = await self._store.get(uuid)
        if found.is_failure():
            return found

        macro = found.value
        if macro is None:
            return Failure(f"Macro not found with UUID: {uuid}")
        if macro["documentType"] != "Macro":
            return Failure(f"Entity with UUID {uuid} is not a macro")

        func = self._bound.get(uuid)
        if func is None:
            return Failure(f"Macro '{macro.get('name')}' cannot be executed by the current user")

        async def _run() -> Any:
            outcome = func(dict(args or {}))
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        logger.info(f"Executing macro {macro.get('name')!r} ({uuid})")
        result = await from_async_callable(_run)
        if result.is_failure():
            return Failure(f"Macro '{macro.get('name')}' failed: {result.error}")
        return result


class InMemorySceneManager(SceneManager):
    """Scene documents of a DocumentStore; the active one carries active=True"""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def scenes(self) -> Result[List[Document], str]:
        return await self._store.query("Scene")

    async def get(self, scene_id: str) -> Result[Optional[Document], str]:
        scenes = await self._store.query("Scene")
        if scenes.is_failure():
            return scenes
        return Success(next((s for s in scenes.value if scene_id in (s["id"], s["uuid"])), None))

    async def activate(self, scene_id: str) -> Result[Document, str]:
        found = await self.get(scene_id)
        if found.is_failure():
            return found
        if found.value is None:
            return Failure(f"Scene with id {scene_id} not found")

        target = found.value["uuid"]
        scenes = await self._store.query("Scene")
        if scenes.is_failure():
            return scenes
        for scene in scenes.value:
            if scene.get("active") and scene["uuid"] != target:
                await self._store.update(scene["uuid"], {"active": False})

        logger.info(f"Activating scene {found.value.get('name')!r}")
        return await self._store.update(target, {"active": True})

    async def active(self) -> Result[Optional[Document], str]:
        scenes = await self._store.query("Scene")
        if scenes.is_failure():
            return scenes
        return Success(next((s for s in scenes.value if s.get("active") is True), None))
