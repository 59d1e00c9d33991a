# surveyor/models.py
import enum
from typing import Dict, List, Optional, Tuple, Union

import attrs

# Values an attribute can carry in the remote payload.
Scalar = Union[str, int, float]

# Fixed report columns every row supplies.
OBJECT_NAME_COLUMN = "Object Name"
MODEL_NAME_COLUMN = "Model Name"
MODEL_PATH_COLUMN = "Model Path"

PATH_SEPARATOR = " > "


class NodeKind(str, enum.Enum):
    FILE = "FILE"
    FOLDER = "FOLDER"


# --- Remote tree data ---
# Using slots=True and frozen=True since these objects are produced on demand by
# the client and must never be mutated by the scanner or aggregator.
@attrs.define(slots=True, frozen=True)
class FolderNode:
    """A single item of a remote folder listing."""
    id: str
    name: str
    kind: NodeKind = attrs.field(converter=NodeKind)
    parent_id: Optional[str] = None
    size: Optional[int] = None
    # Ancestor names ordered root-to-node. Display metadata only, never an identity key.
    path: Tuple[str, ...] = attrs.field(default=(), converter=tuple)

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE


@attrs.define(slots=True, frozen=True)
class TargetFile:
    """A file matching the configured suffix; the unit of attribute extraction."""
    id: str
    name: str
    size: int = 0
    path: Tuple[str, ...] = attrs.field(default=(), converter=tuple)
    parent_id: Optional[str] = None

    @classmethod
    def from_node(cls, node: FolderNode) -> "TargetFile":
        """Creates a TargetFile from a FILE listing entry, keeping its path unchanged."""
        return cls(id=node.id, name=node.name, size=node.size or 0, path=node.path, parent_id=node.parent_id)

    @property
    def path_string(self) -> str:
        return PATH_SEPARATOR.join(self.path)


@attrs.define(slots=True, frozen=True)
class Entity:
    id: str
    type: str = "Unknown"


@attrs.define(slots=True, frozen=True)
class Property:
    name: str
    value: Scalar


@attrs.define(slots=True, frozen=True)
class ObjectProperties:
    """Raw attribute payload for one entity, before set filtering."""
    id: str
    name: str
    type: str = "Unknown"
    properties: Tuple[Property, ...] = attrs.field(default=(), converter=tuple)


@attrs.define(slots=True, frozen=True)
class AttributeRecord:
    """The retained attributes of one object, tied to the file it came from."""
    object_id: str
    object_name: str
    object_type: str
    attributes: Dict[str, Scalar]
    source_file: TargetFile


# --- Results handed back to the orchestrating layer ---
@attrs.define(slots=True, frozen=True)
class SkippedUnit:
    """A sub-folder or file that could not be read and was left out of the result."""
    kind: str  # "folder" or "file"
    id: str
    name: str
    reason: str

    def describe(self) -> str:
        return f"{self.kind} '{self.name}' ({self.id}): {self.reason}"


@attrs.define(slots=True, frozen=True)
class ReportTable:
    """A rectangular, column-ordered table ready for export."""
    columns: Tuple[str, ...] = attrs.field(converter=tuple)
    rows: Tuple[Dict[str, Scalar], ...] = attrs.field(converter=tuple)

    def __len__(self) -> int:
        return len(self.rows)


@attrs.define(slots=True)
class SearchResult:
    folder_id: Optional[str]
    files: List[TargetFile] = attrs.field(factory=list)
    skipped: List[SkippedUnit] = attrs.field(factory=list)
    # Set when enumeration stopped early; files is then incomplete.
    cancelled: bool = False

    @property
    def found(self) -> bool:
        return self.folder_id is not None


@attrs.define(slots=True)
class Report:
    table: ReportTable
    skipped: List[SkippedUnit] = attrs.field(factory=list)
    files_processed: int = 0
    cancelled: bool = False
