"""
Runtime support imported by generated UI libraries and handler units.

A generated library never reaches for a global registry: UI.initialize()
injects one into its LibraryBinding, and every accessor resolves through
that binding on each access.
"""

import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Dict, Optional

from flowui.diagnostics import FlowUIError, PreconditionError


class LibraryNotInitializedError(FlowUIError):
    """A generated library was used before UI.initialize(registry)."""


class LibraryBinding:
    """Registry handle shared by every accessor of one generated library"""

    def __init__(self, scene_name: str):
        self.scene_name = scene_name
        self._registry = None

    def initialize(self, registry):
        if registry is None:
            raise ValueError("UI.initialize() needs a registry")
        self._registry = registry

    def reset(self):
        self._registry = None

    @property
    def is_initialized(self) -> bool:
        return self._registry is not None

    @property
    def registry(self):
        if self._registry is None:
            raise LibraryNotInitializedError(
                f"UI library for scene '{self.scene_name}' used before UI.initialize(registry)"
            )
        return self._registry

    def get(self, path: str, component_type):
        return self.registry.get_ui_component(path, component_type)

    def set_panel_active(self, path: str, is_active: bool, deactivate_others: bool = True, keep_last_panel: bool = False):
        return self.registry.set_panel_active(
            path, is_active, deactivate_others=deactivate_others, keep_last_panel=keep_last_panel
        )

    def toggle_panel(self, path: str):
        return self.registry.toggle_panel(path)

    def is_panel_visible(self, path: str) -> bool:
        return self.registry.is_panel_visible(path)


class ElementAccessor:
    """Class-level property that looks an element up by canonical path on every read"""

    def __init__(self, binding: LibraryBinding, path: str, component_type):
        self.binding = binding
        self.path = path
        self.component_type = component_type
        self.name = path

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner=None):
        return self.binding.get(self.path, self.component_type)


class PanelVisibility:
    def __init__(self, binding: LibraryBinding, path: str):
        self.binding = binding
        self.path = path

    def __get__(self, instance, owner=None) -> bool:
        return self.binding.is_panel_visible(self.path)


_loaded_units: Dict[Path, ModuleType] = {}


def load_generated_unit(anchor_file, relative: str, module_name: Optional[str] = None) -> ModuleType:
    """Import a generated file by path, relative to the file that asks for it.

    Handler unit names (Scene UIHandler.g.py) are not importable module names,
    so units load each other by file. Each file is executed once; later calls
    return the same module so class-level state (the library binding) is shared.
    """
    path = (Path(anchor_file).parent / relative).resolve()
    if path in _loaded_units:
        return _loaded_units[path]
    if not path.exists():
        raise PreconditionError(f"Generated unit not found: {path}")

    name = module_name or path.name.split(".", 1)[0]
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    _loaded_units[path] = module
    return module


def forget_generated_units():
    _loaded_units.clear()
