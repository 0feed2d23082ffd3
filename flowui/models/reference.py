# reference.py
from typing import List, Optional

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from flowui.models.capability import Capability

PATH_SEPARATOR = "/"


def is_valid_canonical_path(path: Optional[str]) -> bool:
    """A canonical path is a non-empty run of non-empty names joined by '/'."""
    if not path or not path.strip():
        return False
    return all(part.strip() for part in path.split(PATH_SEPARATOR))


class ElementReference(BaseModel):
    """One tracked UI node. The canonical path is its stable identity."""

    name: str = Field(..., min_length=1)  # display name at capture time
    canonical_path: str = Field(...)
    capability: Capability
    instance_key: Optional[int] = Field(default=None, exclude=True)  # only meaningful while the node is alive

    _node = PrivateAttr(default=None)

    @field_validator("canonical_path")
    def validate_canonical_path(cls, v):
        if not is_valid_canonical_path(v):
            raise ValueError(f"Malformed canonical path '{v}'")
        return v

    @property
    def category(self) -> str:
        return self.capability.category

    @property
    def node(self):
        return self._node

    @property
    def is_bound(self) -> bool:
        return self._node is not None and not self._node.destroyed

    @property
    def words(self) -> List[str]:
        return [word for word in self.name.split("_") if word]

    def bind(self, node):
        self._node = node
        self.instance_key = node.instance_key

    def unbind(self):
        self._node = None


class UICategory(BaseModel):
    """References sharing one capability, in discovery order"""

    name: str = Field(..., min_length=1)
    references: List[ElementReference] = Field(default_factory=list)


class RegistryDocument(BaseModel):
    """On-disk form of the registry"""

    schema_version: str = Field(default="1")
    scene: str = ""
    categories: List[UICategory] = Field(default_factory=list)

    @field_validator("schema_version")
    def validate_schema_version(cls, v):
        if v != "1":
            raise ValueError("Unsupported registry schema version")
        return v
