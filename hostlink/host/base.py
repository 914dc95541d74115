#!/usr/bin/env python3

"""
Host Collaborator Interfaces

The host application's state lives behind these interfaces. Feature routers
call them; the connection core never does. Implementations return Result
values so that routers can turn failures into error replies without
guessing at exception types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shared.functional import Result

Document = Dict[str, Any]


class DocumentStore(ABC):
    """Documents of the host (actors, items, scenes, ...) addressed by uuid"""

    @abstractmethod
    async def get(self, uuid: str) -> Result[Optional[Document], str]:
        """Look up one document; Success(None) when it does not exist"""
        pass

    @abstractmethod
    async def query(self, document_type: Optional[str] = None,
                    filters: Optional[Dict[str, str]] = None) -> Result[List[Document], str]:
        pass

    @abstractmethod
    async def create(self, document_type: str, data: Dict[str, Any],
                     folder: Optional[str] = None) -> Result[Document, str]:
        pass

    @abstractmethod
    async def update(self, uuid: str, changes: Dict[str, Any]) -> Result[Document, str]:
        pass

    @abstractmethod
    async def delete(self, uuid: str) -> Result[bool, str]:
        pass

    @abstractmethod
    async def structure(self) -> Result[Dict[str, List[Dict[str, Any]]], str]:
        """Folder and collection layout of the host"""
        pass

    @abstractmethod
    async def select(self, uuids: List[str], overwrite: bool = False) -> Result[List[str], str]:
        """Mark documents as the host's current selection"""
        pass

    @abstractmethod
    async def selected(self) -> Result[List[Document], str]:
        pass


class SearchIndex(ABC):
    """Full text index over the host's documents"""

    @property
    @abstractmethod
    def ready(self) -> bool:
        pass

    @abstractmethod
    async def build(self) -> Result[int, str]:
        """(Re)build the index; returns the number of indexed documents"""
        pass

    @abstractmethod
    async def search(self, query: str, limit: int = 200,
                     filters: Optional[Dict[str, str]] = None) -> Result[List[Document], str]:
        """
        Best matches for query, at most limit of them

        filters are applied before the limit, so a filtered search returns
        up to limit matching documents.
        """
        pass


@dataclass(frozen=True)
class FileEntry:
    name: str
    path: str
    type: str  # "file" or "directory"

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "path": self.path, "type": self.type}


class FileStorage(ABC):
    """File browser and uploader/downloader of the host"""

    @abstractmethod
    async def browse(self, path: str = "", recursive: bool = False) -> Result[List[FileEntry], str]:
        pass

    @abstractmethod
    async def upload(self, path: str, filename: str, data: bytes,
                     overwrite: bool = False) -> Result[str, str]:
        """Store data at path/filename; returns the stored path"""
        pass

    @abstractmethod
    async def download(self, path: str) -> Result[bytes, str]:
        pass


class MacroRunner(ABC):
    """Stored macros of the host and their execution"""

    @abstractmethod
    async def macros(self) -> Result[List[Document], str]:
        """Every macro with its uuid, name, command, scope and canExecute flag"""
        pass

    @abstractmethod
    async def execute(self, uuid: str, args: Optional[Dict[str, Any]] = None) -> Result[Any, str]:
        pass


class SceneManager(ABC):
    """Scenes of the host; at most one of them is active"""

    @abstractmethod
    async def scenes(self) -> Result[List[Document], str]:
        pass

    @abstractmethod
    async def get(self, scene_id: str) -> Result[Optional[Document], str]:
        pass

    @abstractmethod
    async def activate(self, scene_id: str) -> Result[Document, str]:
        pass

    @abstractmethod
    async def active(self) -> Result[Optional[Document], str]:
        pass


@dataclass
class RosterChange:
    """Outcome of adding or removing combatants"""
    encounter_id: str
    changed: List[str]
    failed: List[Dict[str, str]]


class EncounterTracker(ABC):
    """
    Combat encounters of the host

    Methods taking an optional encounter_id act on the current encounter
    when it is None.
    """

    NAVIGATION = ("nextTurn", "nextRound", "previousTurn", "previousRound")

    @abstractmethod
    async def encounters(self) -> Result[List[Document], str]:
        pass

    @abstractmethod
    async def start(self, name: str, uuids: List[str]) -> Result[Document, str]:
        """Create an encounter from the given tokens/actors and make it current"""
        pass

    @abstractmethod
    async def navigate(self, encounter_id: Optional[str], action: str) -> Result[Document, str]:
        """Apply one of NAVIGATION; returns the encounter afterwards"""
        pass

    @abstractmethod
    async def end(self, encounter_id: Optional[str]) -> Result[str, str]:
        """Delete the encounter; returns its id"""
        pass

    @abstractmethod
    async def add(self, encounter_id: Optional[str], uuids: List[str]) -> Result[RosterChange, str]:
        pass

    @abstractmethod
    async def remove(self, encounter_id: Optional[str], uuids: List[str]) -> Result[RosterChange, str]:
        pass


@dataclass
class HostServices:
    """
    Collaborators handed to the feature router factories

    macros, scenes and encounters are optional; their routes answer with an
    error reply on hosts that do not provide them.
    """
    documents: DocumentStore
    search: SearchIndex
    files: FileStorage
    macros: Optional[MacroRunner] = None
    scenes: Optional[SceneManager] = None
    encounters: Optional[EncounterTracker] = None
