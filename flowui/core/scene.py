"""
Scene hierarchy - the live node tree the registry and search index work on.

A Scene owns a forest of SceneNode roots. Structural changes (reparenting,
renaming, destroying) are broadcast to subscribers so path caches can drop
stale entries.
"""

import itertools
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from flowui.components.base_component import BaseComponent
from flowui.components.widgets import create_component
from flowui.diagnostics import ConfigError, IssueKind, Reporter, ensure_reporter
from flowui.models.scene_spec import NodeSpec, SceneSpec

PATH_SEPARATOR = "/"

_instance_keys = itertools.count(1)


class SceneNode:
    """One node of the UI hierarchy"""

    def __init__(self, name: str, components: Optional[List[BaseComponent]] = None, active: bool = True):
        self.name = name
        self.parent: Optional["SceneNode"] = None
        self.children: List["SceneNode"] = []
        self.components: Dict[str, BaseComponent] = {}
        self.active = active
        self.instance_key = next(_instance_keys)
        self.destroyed = False
        self.scene: Optional["Scene"] = None
        for component in components or []:
            self.add_component(component)

    # Components

    def add_component(self, component: BaseComponent) -> BaseComponent:
        component.node = self
        self.components[component.type_name] = component
        return component

    def get_component(self, component_type) -> Optional[BaseComponent]:
        return self.components.get(component_type.type_name)

    def has_component(self, type_name: str) -> bool:
        return type_name in self.components

    # Hierarchy

    def add_child(self, child: "SceneNode") -> "SceneNode":
        child.set_parent(self)
        return child

    def set_parent(self, parent: Optional["SceneNode"]):
        if parent is self.parent:
            return
        if self.parent is not None:
            self.parent.children.remove(self)
        elif self.scene is not None and self in self.scene.roots:
            self.scene.roots.remove(self)
        self.parent = parent
        if parent is not None:
            parent.children.append(self)
            self._set_scene(parent.scene)
        self._notify()

    def rename(self, name: str):
        if name != self.name:
            self.name = name
            self._notify()

    def destroy(self):
        """Detach from the hierarchy and mark the whole subtree as gone"""
        if self.destroyed:
            return
        self._notify()
        if self.parent is not None:
            self.parent.children.remove(self)
        elif self.scene is not None and self in self.scene.roots:
            self.scene.roots.remove(self)
        for node in self.iter_subtree():
            node.destroyed = True
        self.parent = None

    def set_active(self, active: bool):
        self.active = bool(active)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def depth(self) -> int:
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return depth

    def iter_subtree(self) -> Iterator["SceneNode"]:
        """Pre-order walk of this node and its descendants"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def child(self, name: str) -> Optional["SceneNode"]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def find(self, relative_path: str) -> Optional["SceneNode"]:
        current = self
        for part in relative_path.split(PATH_SEPARATOR):
            current = current.child(part)
            if current is None:
                return None
        return current

    def full_path(self) -> str:
        names = []
        current = self
        while current is not None:
            names.append(current.name)
            current = current.parent
        return PATH_SEPARATOR.join(reversed(names))

    def relative_path_to(self, descendant: "SceneNode") -> str:
        names = []
        current = descendant
        while current is not None and current is not self:
            names.append(current.name)
            current = current.parent
        if current is None:
            raise ValueError(f"'{descendant.name}' is not below '{self.name}'")
        return PATH_SEPARATOR.join(reversed(names))

    def _set_scene(self, scene: Optional["Scene"]):
        for node in self.iter_subtree():
            node.scene = scene

    def _notify(self):
        if self.scene is not None:
            self.scene.structure_changed(self)

    def __repr__(self):
        return f"<SceneNode {self.name!r} #{self.instance_key}>"


class Scene:
    """A named forest of UI nodes"""

    def __init__(self, name: str):
        self.name = name
        self.roots: List[SceneNode] = []
        self._subscribers: List[Callable[[SceneNode], None]] = []

    def add_root(self, node: SceneNode) -> SceneNode:
        if node.parent is not None:
            node.set_parent(None)
        node._set_scene(self)
        if node not in self.roots:
            self.roots.append(node)
        return node

    def subscribe(self, callback: Callable[[SceneNode], None]):
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[SceneNode], None]):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def structure_changed(self, node: SceneNode):
        for callback in list(self._subscribers):
            callback(node)

    def walk(self) -> Iterator[SceneNode]:
        for root in list(self.roots):
            yield from root.iter_subtree()

    def snapshot(self) -> List[SceneNode]:
        return list(self.walk())

    def find_by_path(self, path: str) -> Optional[SceneNode]:
        if not path:
            return None
        root_name, _, rest = path.partition(PATH_SEPARATOR)
        for root in self.roots:
            if root.name != root_name:
                continue
            found = root.find(rest) if rest else root
            if found is not None:
                return found
        return None

    def find_by_name(self, name: str) -> List[SceneNode]:
        return [node for node in self.walk() if node.name == name]

    def find_by_instance_key(self, instance_key: int) -> Optional[SceneNode]:
        for node in self.walk():
            if node.instance_key == instance_key:
                return node
        return None


class PathCache:
    """Memoized canonical paths, keyed by node instance key.

    Computing a path walks to the root, so paths are cached per node. The
    cache listens to scene structure changes and drops the changed node and
    its descendants, since their paths all contain the changed segment.
    """

    def __init__(self):
        self._paths: Dict[int, str] = {}

    def get(self, node: SceneNode) -> str:
        path = self._paths.get(node.instance_key)
        if path is None:
            path = node.full_path()
            self._paths[node.instance_key] = path
        return path

    def invalidate(self, node: SceneNode):
        for affected in node.iter_subtree():
            self._paths.pop(affected.instance_key, None)

    def attach(self, scene: Scene):
        scene.subscribe(self.invalidate)

    def detach(self, scene: Scene):
        scene.unsubscribe(self.invalidate)

    def clear(self):
        self._paths.clear()

    def __contains__(self, node: SceneNode) -> bool:
        return node.instance_key in self._paths

    def __len__(self):
        return len(self._paths)


# Loading and saving

def _build_node(spec: NodeSpec, pending: List[Tuple[BaseComponent, str, str]]) -> SceneNode:
    node = SceneNode(spec.name, active=spec.active)
    for entry in spec.components:
        component = create_component(entry)
        node.add_component(component)
        if isinstance(entry, dict):
            for ref, relative_path in component.pending_refs(entry).items():
                pending.append((component, ref, relative_path))
    for child_spec in spec.children:
        node.add_child(_build_node(child_spec, pending))
    return node


def scene_from_dict(data: dict, reporter: Optional[Reporter] = None) -> Scene:
    """Build a Scene from parsed YAML data.

    Component node references (placeholder, fill_rect, ...) are paths relative
    to the owning node and are resolved once the full tree exists.
    """
    reporter = ensure_reporter(reporter)
    try:
        spec = SceneSpec(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid scene description: {e}") from e

    scene = Scene(spec.scene)
    pending: List[Tuple[BaseComponent, str, str]] = []
    for root_spec in spec.roots:
        try:
            scene.add_root(_build_node(root_spec, pending))
        except ValueError as e:
            raise ConfigError(f"Invalid node under '{root_spec.name}': {e}") from e

    for component, ref, relative_path in pending:
        target = component.node.find(relative_path)
        if target is None:
            reporter.warn(
                IssueKind.LOOKUP_MISS,
                f"{component.type_name}.{ref} points at missing node '{relative_path}'",
                subject=component.node.full_path(),
            )
            continue
        setattr(component, ref, target)
    return scene


def load_scene(path, reporter: Optional[Reporter] = None) -> Scene:
    scene_path = Path(path)
    try:
        with open(scene_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Could not read scene file {scene_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse scene file {scene_path}: {e}") from e
    return scene_from_dict(data, reporter)


def _node_to_dict(node: SceneNode) -> dict:
    data: dict = {"name": node.name}
    if not node.active:
        data["active"] = False
    components = []
    for component in node.components.values():
        entry = component.to_dict()
        components.append(entry["type"] if len(entry) == 1 else entry)
    if components:
        data["components"] = components
    if node.children:
        data["children"] = [_node_to_dict(child) for child in node.children]
    return data


def scene_to_dict(scene: Scene) -> dict:
    return {"scene": scene.name, "roots": [_node_to_dict(root) for root in scene.roots]}


def save_scene(scene: Scene, path):
    scene_path = Path(path)
    scene_path.parent.mkdir(parents=True, exist_ok=True)
    with open(scene_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(scene_to_dict(scene), f, sort_keys=False, allow_unicode=True)
