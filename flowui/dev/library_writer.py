#!/usr/bin/env python3
"""
UI Library Generator

Groups the registry into panels by name and writes one Python module per
scene exposing dot-path accessors:

    UI.initialize(registry)
    UI.MainMenu.show()
    UI.MainMenu.Play_Button.on_click.add_listener(...)
"""

import keyword
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from flowui.config import FlowUISettings
from flowui.core.naming import sanitize_identifier
from flowui.core.registry import ReferenceRegistry
from flowui.diagnostics import IssueKind, PreconditionError, Reporter, ensure_reporter
from flowui.dev.file_output import Decider, write_unit
from flowui.models.capability import PANEL_WORD, Capability, accessor_type_for
from flowui.models.reference import ElementReference, is_valid_canonical_path

DEFAULT_GROUP = "Main"
HEADER_RULE = "# ========================================"


class GroupElement(BaseModel):
    property_name: str
    reference: ElementReference

    @property
    def accessor_type(self) -> str:
        node = self.reference.node if self.reference.is_bound else None
        return accessor_type_for(self.reference.capability, node)


class PanelGroup(BaseModel):
    key: str
    panel: Optional[ElementReference] = None  # reference driving show/hide/toggle
    elements: List[GroupElement] = Field(default_factory=list)

    @property
    def class_name(self) -> str:
        identifier = sanitize_identifier(self.key)
        if keyword.iskeyword(identifier):
            identifier += "_"
        return identifier


def _words(name: str) -> List[str]:
    return [word for word in name.split("_") if word]


def _panel_index(words: List[str]) -> int:
    for index, word in enumerate(words):
        if word.lower() == PANEL_WORD.lower():
            return index
    return -1


def group_key(name: str) -> str:
    """"Main_Menu_Panel_Play_Button" -> "MainMenu"; no Panel word -> first word."""
    words = _words(name)
    index = _panel_index(words)
    if index > 0:
        return "".join(words[:index])
    return words[0] if words else DEFAULT_GROUP


def property_name(name: str) -> str:
    """"Main_Menu_Panel_Play_Button" -> "Play_Button"."""
    words = _words(name)
    index = _panel_index(words)
    rest = words[index + 1:] if index > 0 else words[1:]
    identifier = sanitize_identifier("_".join(rest) if rest else name)
    if keyword.iskeyword(identifier):
        identifier += "_"
    return identifier


def build_panel_groups(registry: ReferenceRegistry, reporter: Optional[Reporter] = None) -> List[PanelGroup]:
    """Group every reference by its name-derived panel key, in emission order."""
    reporter = ensure_reporter(reporter)
    buckets: Dict[str, List[ElementReference]] = {}

    for reference in registry.references():
        if not is_valid_canonical_path(reference.canonical_path):
            reporter.warn(IssueKind.MALFORMED, f"Skipping '{reference.name}': malformed path", reference.canonical_path)
            continue
        buckets.setdefault(sanitize_identifier(group_key(reference.name)), []).append(reference)

    groups = []
    for key in sorted(buckets):
        references = sorted(buckets[key], key=lambda r: (r.capability.value, r.name, r.canonical_path))
        group = PanelGroup(key=key)

        panels = sorted(
            (r for r in references if r.capability == Capability.PANEL),
            key=lambda r: (r.name, r.canonical_path),
        )
        if panels:
            group.panel = panels[0]

        seen = set()
        for reference in references:
            if reference is group.panel:
                continue
            name = property_name(reference.name)
            if name in seen:
                reporter.warn(
                    IssueKind.DUPLICATE,
                    f"Duplicate accessor '{key}.{name}', skipping '{reference.name}'",
                    reference.canonical_path,
                )
                continue
            seen.add(name)
            group.elements.append(GroupElement(property_name=name, reference=reference))
        groups.append(group)
    return groups


def _panel_lines(group: PanelGroup) -> List[str]:
    path = group.panel.canonical_path
    return [
        f"        PANEL_PATH = {path!r}",
        "        panel = ElementAccessor(_binding, PANEL_PATH, SceneNode)",
        "        is_visible = PanelVisibility(_binding, PANEL_PATH)",
        "",
        "        @staticmethod",
        "        def show(hide_others: bool = True, keep_last_panel: bool = False):",
        f'            """Show {group.panel.name}, hiding other panels unless hide_others is False."""',
        f"            _binding.set_panel_active({path!r}, True, hide_others, keep_last_panel)",
        "",
        "        @staticmethod",
        "        def hide():",
        f"            _binding.set_panel_active({path!r}, False)",
        "",
        "        @staticmethod",
        "        def toggle():",
        f"            _binding.toggle_panel({path!r})",
    ]


def _group_lines(group: PanelGroup) -> List[str]:
    lines = [
        f"    # region {group.key}",
        f"    class {group.class_name}:",
        f'        """{group.key} panel and its UI elements"""',
        "",
    ]
    body: List[str] = []
    if group.panel is not None:
        body.extend(_panel_lines(group))

    current_capability = None
    for element in group.elements:
        capability = element.reference.capability
        if capability != current_capability:
            if body:
                body.append("")
            body.append(f"        # {capability.value}")
            current_capability = capability
        body.append(
            f"        {element.property_name} = ElementAccessor(_binding, "
            f"{element.reference.canonical_path!r}, {element.accessor_type})"
        )

    lines.extend(body or ["        pass"])
    lines.extend(["    # endregion", ""])
    return lines


def generate_library(
    scene_name: str,
    registry: ReferenceRegistry,
    stamp: bool = False,
    reporter: Optional[Reporter] = None,
    groups: Optional[List[PanelGroup]] = None,
) -> str:
    """Render the library module text. Identical registries give identical text unless stamp is set."""
    if groups is None:
        groups = build_panel_groups(registry, reporter)
    scene_identifier = sanitize_identifier(scene_name)

    component_types = sorted(
        {element.accessor_type for group in groups for element in group.elements} - {"SceneNode"}
    )
    needs_scene_node = any(
        group.panel is not None or any(e.accessor_type == "SceneNode" for e in group.elements) for group in groups
    )

    lines = [
        HEADER_RULE,
        "# AUTO-GENERATED CODE - DO NOT MODIFY",
        HEADER_RULE,
        f"# Scene: {scene_identifier}",
    ]
    if stamp:
        lines.append(f"# Generated on: {datetime.now().isoformat(timespec='seconds')}")
    lines.extend([
        HEADER_RULE,
        '"""',
        f"UI library for {scene_name}.",
        "",
        "Usage: UI.initialize(registry), then UI.<Panel>.<Element>",
        '"""',
        "",
    ])
    if component_types:
        lines.append(f"from flowui.components import {', '.join(component_types)}")
    lines.append("from flowui.core.runtime import ElementAccessor, LibraryBinding, PanelVisibility")
    if needs_scene_node:
        lines.append("from flowui.core.scene import SceneNode")
    lines.extend([
        "",
        f"SCENE_NAME = {scene_name!r}",
        "",
        "_binding = LibraryBinding(SCENE_NAME)",
        "",
        "",
        "class UI:",
        f'    """Dot-path access to every registered UI element of {scene_name}"""',
        "",
        "    @staticmethod",
        "    def initialize(registry):",
        "        _binding.initialize(registry)",
        "",
        "    @staticmethod",
        "    def is_initialized() -> bool:",
        "        return _binding.is_initialized",
        "",
    ])
    for group in groups:
        lines.extend(_group_lines(group))

    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines) + "\n"


def library_file_name(settings: FlowUISettings, scene_name: str) -> str:
    return f"{settings.library.class_prefix}{sanitize_identifier(scene_name)}.py"


def library_path(settings: FlowUISettings, scene_name: str) -> Path:
    return settings.library_dir / library_file_name(settings, scene_name)


def is_library_generated(settings: FlowUISettings, scene_name: str) -> bool:
    return library_path(settings, scene_name).exists()


def write_library(
    registry: ReferenceRegistry,
    settings: FlowUISettings,
    decide: Optional[Decider] = None,
    reporter: Optional[Reporter] = None,
) -> Optional[Path]:
    """Generate and write the library for the registry's scene.

    Returns:
        The written path, or None when the overwrite decision was CANCEL.
    """
    reporter = ensure_reporter(reporter)
    scene_name = registry.scene_name
    if not scene_name:
        raise PreconditionError("Registry is not bound to a scene, nothing to name the library after")

    print(f"📚 Generating UI library for {scene_name}...")
    for name in registry.find_duplicate_names():
        reporter.warn(IssueKind.DUPLICATE, f"Duplicate element name '{name}' may produce ambiguous accessors", name)

    groups = build_panel_groups(registry, reporter)
    content = generate_library(scene_name, registry, settings.stamp_generated_files, reporter, groups)
    written = write_unit(library_path(settings, scene_name), content, decide)
    if written is not None:
        element_count = sum(len(group.elements) for group in groups)
        print(f"📊 {len(groups)} panel groups, {element_count} elements")
    return written
