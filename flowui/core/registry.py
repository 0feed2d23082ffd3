"""
Reference Registry - the canonical mapping of UI elements to stable keys.

Owns the category lists (the only persisted state), a path index and an
instance-key index, plus the panel activation state used by the generated
library at runtime.
"""

from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Union

import yaml
from pydantic import ValidationError

from flowui.diagnostics import ConfigError, IssueKind, Reporter, ensure_reporter
from flowui.models.capability import Capability, classify_node
from flowui.models.reference import ElementReference, RegistryDocument, UICategory, is_valid_canonical_path
from flowui.core.scene import PATH_SEPARATOR, PathCache, Scene, SceneNode

CapabilityProbe = Callable[[SceneNode], Capability]


class ReferenceRegistry:
    """Registry of UI element references, grouped into categories by capability.

    Not thread-safe: callers serialize mutations.
    """

    def __init__(self, scene: Optional[Scene] = None, reporter: Optional[Reporter] = None, standardizer=None):
        self.reporter = ensure_reporter(reporter)
        self.standardizer = standardizer  # renames nodes on add when set
        self.scene_name = scene.name if scene is not None else ""
        self._categories: List[UICategory] = []
        self._by_path: Dict[str, ElementReference] = {}
        self._path_by_instance: Dict[int, str] = {}
        self._path_cache = PathCache()
        self._scene: Optional[Scene] = None
        self._active_panels: Dict[int, SceneNode] = {}
        self._last_active_panel: Optional[SceneNode] = None
        if scene is not None:
            self._attach(scene)

    # ------------------------------------------------------------------
    # Reference management
    # ------------------------------------------------------------------

    def add(
        self, node: Optional[SceneNode], probe: CapabilityProbe = classify_node, standardize: Optional[bool] = None
    ) -> Optional[ElementReference]:
        """Register a node. Duplicates (same path or same instance) are rejected, not merged.

        With standardize (or a registry-level standardizer) the node and its
        composite children are renamed before the path is computed.

        Returns:
            The new reference, or None when the node was rejected.
        """
        if node is None:
            self.reporter.error(IssueKind.MALFORMED, "Attempted to add a null UI element")
            return None
        if node.destroyed:
            self.reporter.warn(IssueKind.MISSING_REFERENCE, f"UI element '{node.name}' has been destroyed", node.name)
            return None

        # A rejected add must not rename anything
        if self.contains(instance_key=node.instance_key):
            return self._reject_duplicate(node, self._path_by_instance[node.instance_key])

        if standardize is None:
            standardize = self.standardizer is not None
        if standardize:
            if self.standardizer is None:
                from flowui.core.naming import NameStandardizer

                self.standardizer = NameStandardizer(reporter=self.reporter)
            proposed = self.standardizer.proposed_name(node)
            if proposed != node.name:
                prefix = self._path_cache.get(node.parent) + PATH_SEPARATOR if node.parent is not None else ""
                if prefix + proposed in self._by_path:
                    return self._reject_duplicate(node, prefix + proposed)
            self.standardizer.standardize(node)
            self._path_cache.invalidate(node)

        capability = probe(node)
        path = self._path_cache.get(node)
        if not is_valid_canonical_path(path):
            self.reporter.error(IssueKind.MALFORMED, f"UI element '{node.name}' has a malformed path", path)
            return None

        if self.contains(path, node.instance_key):
            return self._reject_duplicate(node, path)

        reference = ElementReference(name=node.name, canonical_path=path, capability=capability)
        reference.bind(node)
        self._category(capability.category, create=True).references.append(reference)
        self._index(reference)
        return reference

    def _reject_duplicate(self, node: SceneNode, path: str) -> None:
        self.reporter.warn(
            IssueKind.DUPLICATE,
            f"Duplicate UI element '{node.name}' attempted to be added. Skipping.",
            path,
        )
        return None

    def add_many(self, nodes, probe: CapabilityProbe = classify_node) -> List[ElementReference]:
        added = []
        for node in nodes:
            reference = self.add(node, probe)
            if reference is not None:
                added.append(reference)
        return added

    def remove(self, key: Union[str, int]) -> bool:
        """Remove by canonical path (str) or by instance key (int)."""
        if isinstance(key, int):
            return self.remove_by_instance_key(key)
        return self.remove_by_path(key)

    def remove_by_path(self, path: str) -> bool:
        if not is_valid_canonical_path(path):
            self.reporter.error(IssueKind.MALFORMED, "Cannot remove a reference with a malformed path", str(path))
            return False
        reference = self._by_path.get(path)
        if reference is None:
            self.reporter.warn(IssueKind.LOOKUP_MISS, f"No reference found with path '{path}'", path)
            return False
        self._drop(reference)
        return True

    def remove_by_instance_key(self, instance_key: int) -> bool:
        path = self._path_by_instance.get(instance_key)
        reference = self._by_path.get(path) if path is not None else None
        if reference is None:
            self.reporter.warn(
                IssueKind.LOOKUP_MISS,
                f"No reference found with instance key '{instance_key}'",
                str(instance_key),
            )
            return False
        self._drop(reference)
        return True

    def contains(self, path: Optional[str] = None, instance_key: Optional[int] = None) -> bool:
        return (path is not None and path in self._by_path) or (
            instance_key is not None and instance_key in self._path_by_instance
        )

    def get_reference(self, path: str) -> Optional[ElementReference]:
        return self._by_path.get(path)

    def lookup(self, capability: Optional[Capability], key: str) -> Optional[SceneNode]:
        """Resolve a canonical path to its live node.

        Passing a capability additionally checks the reference was registered
        with it; None skips the check.
        """
        reference = self._by_path.get(key)
        if reference is None:
            self.reporter.warn(IssueKind.LOOKUP_MISS, f"No reference found with path '{key}'", key)
            return None
        if capability is not None and reference.capability != capability:
            self.reporter.warn(
                IssueKind.LOOKUP_MISS,
                f"Reference '{reference.name}' is a {reference.category}, not a {capability.category}",
                key,
            )
            return None
        if not reference.is_bound:
            self.reporter.warn(IssueKind.MISSING_REFERENCE, f"UI element '{reference.name}' is not bound to a live node", key)
            return None
        return reference.node

    def lookup_by_instance_key(self, instance_key: int) -> Optional[SceneNode]:
        path = self._path_by_instance.get(instance_key)
        if path is None:
            self.reporter.warn(
                IssueKind.LOOKUP_MISS,
                f"No reference found with instance key '{instance_key}'",
                str(instance_key),
            )
            return None
        return self.lookup(None, path)

    def all_categories(self) -> List[UICategory]:
        """Live category list. Order within a category is discovery order."""
        return self._categories

    def get_category(self, name: str) -> Optional[UICategory]:
        return self._category(name)

    def references(self) -> Iterator[ElementReference]:
        for category in self._categories:
            yield from category.references

    def find_duplicate_names(self) -> List[str]:
        counts: Dict[str, int] = {}
        for reference in self.references():
            counts[reference.name] = counts.get(reference.name, 0) + 1
        return sorted(name for name, count in counts.items() if count > 1)

    def __len__(self):
        return sum(len(category.references) for category in self._categories)

    def __contains__(self, path) -> bool:
        return path in self._by_path

    # ------------------------------------------------------------------
    # Component access (used by generated libraries)
    # ------------------------------------------------------------------

    def get_ui_component(self, key, component_type, is_instance_key: bool = False):
        node = self.lookup_by_instance_key(key) if is_instance_key else self.lookup(None, key)
        if node is None:
            self.reporter.warn(IssueKind.LOOKUP_MISS, f"UI element not found for key '{key}'", str(key))
            return None
        if component_type is SceneNode:
            return node
        component = node.get_component(component_type)
        if component is None:
            self.reporter.warn(
                IssueKind.LOOKUP_MISS,
                f"Component '{component_type.type_name}' not found on UI element for key '{key}'",
                str(key),
            )
        return component

    # ------------------------------------------------------------------
    # Panel activation
    # ------------------------------------------------------------------

    @property
    def active_panels(self) -> List[SceneNode]:
        return list(self._active_panels.values())

    @property
    def last_active_panel(self) -> Optional[SceneNode]:
        return self._last_active_panel

    def get_panel(self, key, is_instance_key: bool = False) -> Optional[SceneNode]:
        node = self.lookup_by_instance_key(key) if is_instance_key else self.lookup(None, key)
        if node is None:
            self.reporter.warn(IssueKind.LOOKUP_MISS, f"Panel not found for key '{key}'", str(key))
            return None
        path = self._path_by_instance.get(node.instance_key, "")
        reference = self._by_path.get(path)
        if reference is None or reference.capability != Capability.PANEL:
            self.reporter.warn(IssueKind.LOOKUP_MISS, f"UI element '{key}' is not a Panel", str(key))
            return None
        return node

    def set_panel_active(
        self,
        key,
        is_active: bool,
        is_instance_key: bool = False,
        deactivate_others: bool = True,
        keep_last_panel: bool = False,
    ) -> bool:
        panel = self.get_panel(key, is_instance_key)
        if panel is None:
            return False
        if is_active:
            self.activate(panel, exclusive=deactivate_others, keep_last=keep_last_panel)
        else:
            self.deactivate(panel)
        return True

    def toggle_panel(self, key) -> bool:
        panel = self.get_panel(key)
        if panel is None:
            return False
        if panel.active:
            self.deactivate(panel)
        else:
            self.activate(panel, exclusive=False)
        return True

    def is_panel_visible(self, key) -> bool:
        panel = self.get_panel(key)
        return panel is not None and panel.active

    def activate(self, panel: SceneNode, exclusive: bool = True, keep_last: bool = False):
        """Activate a panel, optionally deactivating every other active panel.

        With keep_last, the previously activated panel survives an exclusive
        activation. The new panel always becomes the last activated one.
        """
        if exclusive:
            for other in list(self._active_panels.values()):
                if other is panel or (keep_last and other is self._last_active_panel):
                    continue
                other.set_active(False)
                del self._active_panels[other.instance_key]
        panel.set_active(True)
        self._active_panels[panel.instance_key] = panel
        self._last_active_panel = panel

    def deactivate(self, panel: SceneNode):
        panel.set_active(False)
        self._active_panels.pop(panel.instance_key, None)
        if self._last_active_panel is panel:
            self._last_active_panel = None

    # ------------------------------------------------------------------
    # Binding, missing references and persistence
    # ------------------------------------------------------------------

    def bind_scene(self, scene: Scene) -> int:
        """Rebuild both indices from the categories against a live scene.

        Returns:
            int: Number of references that could be bound.
        """
        self._attach(scene)
        self._by_path.clear()
        self._path_by_instance.clear()
        self._reset_panels()
        bound = 0

        for reference in self.references():
            node = scene.find_by_path(reference.canonical_path)
            if node is None or node.destroyed:
                reference.unbind()
                self.reporter.warn(
                    IssueKind.MISSING_REFERENCE,
                    f"UI element '{reference.name}' is missing or has been destroyed",
                    reference.canonical_path,
                )
                continue
            if self.contains(reference.canonical_path, node.instance_key):
                reference.unbind()
                self.reporter.warn(IssueKind.DUPLICATE, f"UI element '{reference.name}' is registered twice", reference.canonical_path)
                continue
            reference.bind(node)
            self._index(reference)
            bound += 1
        return bound

    def find_missing_references(self) -> List[ElementReference]:
        return [reference for reference in self.references() if not reference.is_bound]

    def repair_missing_references(self, scene: Optional[Scene] = None) -> int:
        """Re-resolve missing references by path, then by name and capability."""
        scene = scene or self._scene
        if scene is None:
            return 0
        fixed = 0
        for reference in self.find_missing_references():
            node = scene.find_by_path(reference.canonical_path) or self._find_possible_match(reference, scene)
            if node is None or node.instance_key in self._path_by_instance:
                continue
            path = self._path_cache.get(node)
            current = self._by_path.get(reference.canonical_path)
            if current is reference:
                del self._by_path[reference.canonical_path]
            if path in self._by_path:
                continue
            reference.canonical_path = path
            reference.bind(node)
            self._index(reference)
            self.reporter.info(f"Fixed missing reference: {reference.name}")
            fixed += 1
        return fixed

    def remove_missing_references(self) -> int:
        missing = self.find_missing_references()
        for reference in missing:
            self._drop(reference)
        return len(missing)

    def refresh_paths(self) -> int:
        """Re-key bound references whose node moved or was renamed."""
        moved = 0
        for reference in list(self.references()):
            if not reference.is_bound:
                continue
            path = self._path_cache.get(reference.node)
            if path == reference.canonical_path:
                continue
            if path in self._by_path:
                self.reporter.warn(
                    IssueKind.DUPLICATE,
                    f"Cannot move '{reference.name}', path already registered",
                    path,
                )
                continue
            self._by_path.pop(reference.canonical_path, None)
            reference.canonical_path = path
            reference.name = reference.node.name
            self._index(reference)
            moved += 1
        return moved

    def clear_path_cache(self):
        self._path_cache.clear()

    def dispose(self):
        self._by_path.clear()
        self._path_by_instance.clear()
        self._path_cache.clear()
        self._reset_panels()
        if self._scene is not None:
            self._path_cache.detach(self._scene)
            self._scene = None

    def to_document(self) -> RegistryDocument:
        # model_dump keeps live nodes (private attrs) out of the copy
        return RegistryDocument.model_validate(
            {"scene": self.scene_name, "categories": [c.model_dump() for c in self._categories]}
        )

    @classmethod
    def from_document(cls, document: RegistryDocument, reporter: Optional[Reporter] = None) -> "ReferenceRegistry":
        registry = cls(reporter=reporter)
        registry.scene_name = document.scene
        registry._categories = [UICategory.model_validate(category.model_dump()) for category in document.categories]
        return registry

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attach(self, scene: Scene):
        if self._scene is not None and self._scene is not scene:
            self._path_cache.detach(self._scene)
            self._path_cache.clear()
        self._scene = scene
        self.scene_name = self.scene_name or scene.name
        self._path_cache.attach(scene)

    def _category(self, name: str, create: bool = False) -> Optional[UICategory]:
        for category in self._categories:
            if category.name == name:
                return category
        if not create:
            return None
        category = UICategory(name=name)
        self._categories.append(category)
        return category

    def _index(self, reference: ElementReference):
        self._by_path[reference.canonical_path] = reference
        if reference.is_bound:
            self._path_by_instance[reference.node.instance_key] = reference.canonical_path

    def _drop(self, reference: ElementReference):
        if self._by_path.get(reference.canonical_path) is reference:
            del self._by_path[reference.canonical_path]
        if reference.instance_key is not None and self._path_by_instance.get(reference.instance_key) == reference.canonical_path:
            del self._path_by_instance[reference.instance_key]
        category = self._category(reference.category)
        if category is not None:
            category.references = [r for r in category.references if r is not reference]
        node = reference.node
        if node is not None and node.instance_key in self._active_panels:
            self.deactivate(node)
        reference.unbind()

    def _reset_panels(self):
        self._active_panels.clear()
        self._last_active_panel = None

    def _find_possible_match(self, reference: ElementReference, scene: Scene) -> Optional[SceneNode]:
        target_name = reference.canonical_path.rsplit("/", 1)[-1]
        for name in (reference.name, target_name):
            for node in scene.find_by_name(name):
                if classify_node(node) == reference.capability:
                    return node
        return None


def save_registry(registry: ReferenceRegistry, path):
    """Write the category list to YAML."""
    registry_path = Path(path)
    registry_path.parent.mkdir(parents=True, exist_ok=True)
    data = registry.to_document().model_dump(mode="json")
    with open(registry_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


def load_registry(path, reporter: Optional[Reporter] = None) -> ReferenceRegistry:
    """Read a registry file. References stay unbound until bind_scene() runs."""
    registry_path = Path(path)
    if not registry_path.exists():
        return ReferenceRegistry(reporter=reporter)
    try:
        with open(registry_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        document = RegistryDocument(**data)
    except (yaml.YAMLError, ValidationError, TypeError) as e:
        raise ConfigError(f"Could not load registry {registry_path}: {e}") from e
    return ReferenceRegistry.from_document(document, reporter)
