# tests/conftest.py
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from surveyor.client import RemoteTreeClient
from surveyor.config import Config
from surveyor.errors import RemoteListingFailed, RemoteReadFailed
from surveyor.models import Entity, FolderNode, NodeKind, ObjectProperties, Property, TargetFile


def folder(id: str, name: str, path: Iterable[str] = ()) -> FolderNode:
    return FolderNode(id=id, name=name, kind=NodeKind.FOLDER, path=tuple(path))


def file_node(id: str, name: str, path: Iterable[str] = (), size: int = 1024) -> FolderNode:
    return FolderNode(id=id, name=name, kind=NodeKind.FILE, size=size, path=tuple(path))


def obj(id: str, name: str, type: str = "IfcWall", **properties) -> ObjectProperties:
    return ObjectProperties(id=id, name=name, type=type, properties=[Property(k, v) for k, v in properties.items()])


class FakeTreeClient(RemoteTreeClient):
    """An in-memory remote repository that records every request it receives."""

    def __init__(
        self,
        children: Dict[str, List[FolderNode]],
        objects: Optional[Dict[str, List[ObjectProperties]]] = None,
        failing_listings: Sequence[str] = (),
        failing_reads: Sequence[str] = (),
        roots: Sequence[str] = ("root",),
    ):
        self.children = children
        self.objects = objects or {}
        self.failing_listings = set(failing_listings)
        self.failing_reads = set(failing_reads)
        self.roots = list(roots)
        self.listing_calls: List[str] = []
        self.fetch_calls: List[tuple] = []
        self.closed = False
        self._lock = threading.Lock()

    def list_children(self, folder_id: str) -> List[FolderNode]:
        self.listing_calls.append(folder_id)
        if folder_id in self.failing_listings:
            raise RemoteListingFailed(folder_id, ConnectionError("connection reset"))
        return list(self.children.get(folder_id, []))

    def list_entities(self, file_id: str) -> List[Entity]:
        if file_id in self.failing_listings:
            raise RemoteListingFailed(file_id, ConnectionError("connection reset"))
        return [Entity(id=o.id, type=o.type) for o in self.objects.get(file_id, [])]

    def fetch_attributes(self, file_id: str, entity_ids: Sequence[str]) -> List[ObjectProperties]:
        with self._lock:
            self.fetch_calls.append((file_id, list(entity_ids)))
        if file_id in self.failing_reads:
            raise RemoteReadFailed(file_id, TimeoutError("read timed out"))
        by_id = {o.id: o for o in self.objects.get(file_id, [])}
        return [by_id[entity_id] for entity_id in entity_ids]

    def project_root_folders(self, project_id: str) -> List[str]:
        return list(self.roots)

    def close(self):
        self.closed = True


@pytest.fixture
def project_tree() -> Dict[str, List[FolderNode]]:
    """
    root/
    ├── Docs/
    └── Project/
        ├── readme.txt
        └── Design/
            └── Models/
                ├── A.ifc, B.IFC, C.txt
                └── Archive/
                    └── old.ifc
    """
    models_path = ["Project", "Design", "Models"]
    return {
        "root": [folder("docs", "Docs"), folder("proj", "Project")],
        "docs": [],
        "proj": [file_node("readme", "readme.txt", ["Project"]), folder("design", "Design", ["Project"])],
        "design": [folder("models", "Models", ["Project", "Design"])],
        "models": [
            file_node("f-a", "A.ifc", models_path, size=2048),
            file_node("f-b", "B.IFC", models_path),
            file_node("f-c", "C.txt", models_path),
            folder("archive", "Archive", models_path),
        ],
        "archive": [file_node("f-old", "old.ifc", models_path + ["Archive"])],
    }


@pytest.fixture
def project_objects() -> Dict[str, List[ObjectProperties]]:
    return {
        "f-a": [
            obj("e1", "Wall 1", **{"Pset_WallCommon.FireRating": "EI60", "Pset_WallCommon.IsExternal": "True"}),
            obj("e2", "Door 1", "IfcDoor", **{"Pset_DoorCommon.Width": 900, "Other.Note": "x"}),
        ],
        "f-b": [obj("e3", "Slab 1", "IfcSlab", **{"Pset_SlabCommon.LoadBearing": "True"})],
        "f-old": [obj("e4", "Wall 2", **{"Pset_WallCommon.FireRating": "EI30"})],
    }


@pytest.fixture
def fake_client(project_tree, project_objects) -> FakeTreeClient:
    return FakeTreeClient(project_tree, project_objects)


@pytest.fixture
def app_config() -> Config:
    return Config(attribute_set_names=["Pset_WallCommon", "Pset_DoorCommon", "Pset_SlabCommon"])


@pytest.fixture
def target_files(project_tree) -> List[TargetFile]:
    models = {node.id: node for node in project_tree["models"] + project_tree["archive"]}
    return [TargetFile.from_node(models[file_id]) for file_id in ("f-a", "f-b", "f-old")]


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch) -> Path:
    """A surveyor.toml in an isolated working directory."""
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "surveyor.toml"
    path.write_text("""
[tool.other]
keep = true

[tool.surveyor]
recursive_folder_search = true
attribute_set_names = ["Pset_WallCommon"]
batch_size = 2
""")
    return path
