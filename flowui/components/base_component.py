# base_component.py
from abc import ABC
from typing import Any, Callable, ClassVar, Dict, List


class UIEvent:
    """Listener list fired by interactive components (click, value changed, ...)"""

    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable[..., Any]] = []

    def add_listener(self, listener: Callable[..., Any]):
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[..., Any]):
        # Bound methods compare equal but are distinct objects
        for index, existing in enumerate(self._listeners):
            if existing == listener:
                del self._listeners[index]
                return

    def remove_all_listeners(self):
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def invoke(self, *args):
        for listener in list(self._listeners):
            listener(*args)


class BaseComponent(ABC):
    # This class CANNOT be instantiated directly
    type_name: ClassVar[str] = ""
    # Names of attributes that hold other scene nodes (resolved from YAML paths)
    node_refs: ClassVar[tuple] = ()

    def __init__(self):
        self.node = None  # owning SceneNode, set when attached

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseComponent":
        """Build a component from its YAML mapping (node refs are resolved later)"""
        component = cls()
        for key, value in data.items():
            if key == "type" or key in cls.node_refs:
                continue
            if not hasattr(component, key):
                raise ValueError(f"{cls.type_name} has no field '{key}'")
            setattr(component, key, value)
        return component

    def pending_refs(self, data: Dict[str, Any]) -> Dict[str, str]:
        return {key: data[key] for key in self.node_refs if data.get(key)}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type_name}
        for ref in self.node_refs:
            target = getattr(self, ref, None)
            if target is not None and self.node is not None:
                data[ref] = self.node.relative_path_to(target)
        data.update(self.state())
        return data

    def state(self) -> Dict[str, Any]:
        """Serializable scalar state; components with values override this"""
        return {}

    def __repr__(self):
        owner = self.node.name if self.node is not None else "?"
        return f"<{self.type_name} on {owner}>"
