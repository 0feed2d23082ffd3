"""
Naming Normalizer - turns messy captured names into Capitalized_Words_Type.

normalize_name() is the pure string transform. NameStandardizer applies it
to scene nodes, renames the fixed sub-trees of composite widgets in lock-step
and remembers original names so they can be restored.
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from flowui.components.widgets import InputField, ScrollRect, Slider, Toggle
from flowui.diagnostics import Reporter, ensure_reporter
from flowui.models.capability import Capability, classify_node, type_word
from flowui.core.scene import Scene, SceneNode

KNOWN_TYPES = (
    "Button", "Toggle", "Slider", "Panel", "Text",
    "Image", "Dropdown", "InputField", "ScrollView",
    "Label", "Field",
)

# Abbreviation -> full type word
ABBREVIATIONS = {
    "BTN": "Button",
    "TXT": "Text",
    "IMG": "Image",
    "PNL": "Panel",
    "TGL": "Toggle",
    "SLD": "Slider",
    "INP": "InputField",
    "DRP": "Dropdown",
    "SCRV": "ScrollView",
}

BAD_NAME_PATTERNS = (
    re.compile(r"^(Button|InputField|Text|Image|Toggle|Slider|Dropdown|ScrollRect|Panel)(\s*\(\d+\))?$", re.IGNORECASE),
    re.compile(r"^GameObject(\s*\(\d+\))?$", re.IGNORECASE),
    re.compile(r"^New\s+", re.IGNORECASE),
)

_LEGACY_MARKER = re.compile(r"\s*\(Legacy\)\s*", re.IGNORECASE)
_DUPLICATE_MARKER = re.compile(r"\s*\(\d+\)\s*")
_WORD_SPLIT = re.compile(r"[_\s]+|(?<=[a-z0-9])(?=[A-Z])")

# Type words recognised as a trailing suffix when deriving a parent base name
_SUFFIX_TYPES = KNOWN_TYPES[:9]


# ----------------------------------------------------------------------
# String transforms
# ----------------------------------------------------------------------

def cleanup_name(name: str) -> str:
    """Strip "(Legacy)" and "(1)" markers, collapse whitespace, spaces -> "_"."""
    if not name:
        return name
    name = _LEGACY_MARKER.sub(" ", name)
    name = _DUPLICATE_MARKER.sub(" ", name)
    name = re.sub(r"\s+", " ", name).strip()
    return name.replace(" ", "_")


def to_pascal_case_with_underscores(text: str) -> str:
    """"main menu" / "mainMenu" / "MAIN_menu" -> "Main_Menu"."""
    if not text:
        return text
    words = [word for word in _WORD_SPLIT.split(text) if word]
    return "_".join(word[0].upper() + word[1:].lower() for word in words)


def _has_upper_boundary(text: str, index: int) -> bool:
    return index < len(text) and (text[index].isupper() or text[index] == "_")


def _strip_with(name: str, types: Iterable[str]) -> Optional[str]:
    """One pass of the ordered type patterns. None when nothing matched."""
    types = tuple(types)
    lowered = name.lower()

    for word in types:
        if lowered == word.lower():
            return ""

    for word in types:
        if lowered.endswith("_" + word.lower()):
            return name[: -(len(word) + 1)]

    for word in types:
        if lowered.startswith(word.lower()) and len(name) > len(word) and name[len(word)].isupper():
            return name[len(word):]

    for word in types:
        if lowered.startswith(word.lower() + "_"):
            return name[len(word) + 1:]

    # Bare suffix: playButton, PlayButton
    for word in types:
        if len(name) > len(word) and lowered.endswith(word.lower()):
            head, tail = name[: -len(word)], name[-len(word):]
            if tail[0].isupper() and not head[-1].isupper():
                return head

    for abbreviation, word in ABBREVIATIONS.items():
        if word not in types or len(name) <= len(abbreviation):
            continue
        size = len(abbreviation)
        if lowered.endswith("_" + abbreviation.lower()):
            return name[: -(size + 1)]
        if lowered.endswith(abbreviation.lower()):
            tail = name[-size:]
            if tail[0].isupper() and not name[-size - 1].isupper():
                return name[:-size]
        if lowered.startswith(abbreviation.lower()) and _has_upper_boundary(name, size):
            return name[size:].lstrip("_")

    return None


def strip_type_patterns(name: str, own_type: Optional[str] = None) -> str:
    """Remove one type marker from a cleaned name. The node's own type word is tried first."""
    if own_type:
        stripped = _strip_with(name, (own_type,))
        if stripped is not None:
            return stripped
    stripped = _strip_with(name, KNOWN_TYPES)
    return name if stripped is None else stripped


def is_already_standardized(name: str, capability: Capability) -> bool:
    word = type_word(capability)
    if not word or not name:
        return False
    if cleanup_name(name) != name:
        return False

    lowered = name.lower()
    if lowered.endswith(word.lower()):
        return True
    if lowered.startswith(word.lower()) and len(name) > len(word):
        return True
    for abbreviation, full in ABBREVIATIONS.items():
        if full.lower() == word.lower() and (
            lowered.endswith(abbreviation.lower()) or lowered.startswith(abbreviation.lower())
        ):
            return True
    return False


def normalize_name(name: str, capability: Capability, force: bool = False) -> str:
    """Canonical name for a node of the given capability.

    Names that already carry their type word are kept unless force is set.
    Capabilities without a type word (Canvas, CanvasGroup, Unknown) keep
    their name.
    """
    word = type_word(capability)
    if not word:
        return name
    if not force and is_already_standardized(name, capability):
        return name

    base = strip_type_patterns(cleanup_name(name), word)
    base = to_pascal_case_with_underscores(base)
    if not base:
        return word
    return f"{base}_{word}"


def name_without_type_suffix(name: str) -> str:
    lowered = name.lower()
    for word in _SUFFIX_TYPES:
        if lowered.endswith("_" + word.lower()):
            return name[: -(len(word) + 1)]
    for word in _SUFFIX_TYPES:
        if lowered.endswith(word.lower()) and len(name) > len(word):
            return name[: -len(word)]
    for abbreviation in ABBREVIATIONS:
        if lowered.endswith("_" + abbreviation.lower()):
            return name[: -(len(abbreviation) + 1)]
        if lowered.endswith(abbreviation.lower()):
            return name[: -len(abbreviation)]
    return name


def sanitize_identifier(text: str) -> str:
    """Make text usable as a Python identifier."""
    sanitized = re.sub(r"[^a-zA-Z0-9_]", "_", text or "")
    sanitized = re.sub(r"_+", "_", sanitized).strip("_")
    if sanitized and sanitized[0].isdigit():
        sanitized = "_" + sanitized
    return sanitized or "Unnamed"


def to_snake_case(text: str) -> str:
    """"Main_Menu_Panel_Play_Button" -> "main_menu_panel_play_button"."""
    words = [word for word in _WORD_SPLIT.split(sanitize_identifier(text)) if word]
    return "_".join(word.lower() for word in words)


def is_badly_named(name: str) -> bool:
    return any(pattern.search(name) for pattern in BAD_NAME_PATTERNS)


# ----------------------------------------------------------------------
# Scene renaming
# ----------------------------------------------------------------------

class NamingIssuesSummary(BaseModel):
    total_elements: int = 0
    bad_elements: List[str] = Field(default_factory=list)  # full paths

    @property
    def total_bad_elements(self) -> int:
        return len(self.bad_elements)


def analyze_naming_issues(scene: Scene) -> NamingIssuesSummary:
    """Count nameable elements and flag default engine names (Button, Image (2), GameObject, New ...)."""
    summary = NamingIssuesSummary()
    for node in scene.walk():
        if not type_word(classify_node(node)):
            continue
        summary.total_elements += 1
        if is_badly_named(node.name):
            summary.bad_elements.append(node.full_path())
    return summary


class NameStandardizer:
    """Renames scene nodes to canonical names and remembers what they were called"""

    def __init__(
        self,
        standardize_children: bool = True,
        respect_existing: bool = True,
        reporter: Optional[Reporter] = None,
    ):
        self.standardize_children = standardize_children
        self.respect_existing = respect_existing
        self.reporter = ensure_reporter(reporter)
        self.renamed_count = 0
        self._original_names: Dict[int, Tuple[SceneNode, str]] = {}

    def proposed_name(self, node: SceneNode, force: bool = False) -> str:
        """The name standardize() would give the node, without renaming anything."""
        capability = classify_node(node)
        if not type_word(capability):
            return node.name
        if self.respect_existing and not force and is_already_standardized(node.name, capability):
            return node.name
        return normalize_name(node.name, capability, force=True) or node.name

    def standardize(self, node: SceneNode, force: bool = False) -> bool:
        """Rename one node (and its composite children). Returns True if the node was renamed."""
        if node is None:
            return False
        capability = classify_node(node)
        if not type_word(capability):
            return False
        if self.respect_existing and not force and is_already_standardized(node.name, capability):
            return False

        new_name = normalize_name(node.name, capability, force=True)
        renamed = self._rename(node, new_name)
        if (renamed and self.standardize_children) or force:
            self.standardize_child_elements(node, capability)
        return renamed

    def standardize_scene(self, scene: Scene, force: bool = False) -> int:
        """Standardize every node, children before their parents. Returns the rename count."""
        before = self.renamed_count
        for root in list(scene.roots):
            self._standardize_recursively(root, force)
        return self.renamed_count - before

    def standardize_child_elements(self, parent: SceneNode, capability: Optional[Capability] = None):
        capability = capability or classify_node(parent)
        parent_type = type_word(capability) or ""
        base = name_without_type_suffix(parent.name)
        if not base.strip() or base.lower() == parent_type.lower():
            base = ""

        def child_name(role: str) -> str:
            return "_".join(p for p in (to_pascal_case_with_underscores(base), parent_type, role) if p)

        if capability == Capability.INPUT_FIELD:
            field = parent.get_component(InputField)
            for node in self._descendants_with(parent, ("Text", "RichText")):
                is_placeholder = node is field.placeholder or "placeholder" in node.name.lower()
                self._rename(node, child_name("Placeholder" if is_placeholder else "Text"))
        elif capability == Capability.TOGGLE:
            graphic = parent.get_component(Toggle).graphic
            if graphic is not None:
                self._rename(graphic, child_name("Checkmark"))
            for node in self._descendants_with(parent, ("Text", "RichText")):
                if node is not graphic:
                    self._rename(node, child_name("Label"))
        elif capability == Capability.DROPDOWN:
            template = parent.child("Template")
            viewport = template.child("Viewport") if template is not None else None
            for node, role in (
                (parent.child("Label"), "Label"),
                (parent.child("Arrow"), "Arrow"),
                (template, "Template"),
                (template.child("Scrollbar") if template is not None else None, "Scrollbar"),
                (viewport, "Viewport"),
                (viewport.child("Content") if viewport is not None else None, "Content"),
            ):
                if node is not None:
                    self._rename(node, child_name(role))
        elif capability == Capability.SLIDER:
            slider = parent.get_component(Slider)
            if slider.fill_rect is not None and slider.fill_rect.parent is not None:
                self._rename(slider.fill_rect.parent, child_name("Fill_Area"))
                self._rename(slider.fill_rect, child_name("Fill"))
            if slider.handle_rect is not None:
                self._rename(slider.handle_rect, child_name("Handle"))
                if slider.handle_rect.parent is not None and slider.handle_rect.parent is not parent:
                    self._rename(slider.handle_rect.parent, child_name("Handle_Slide_Area"))
        elif capability == Capability.SCROLL_AREA:
            scroll = parent.get_component(ScrollRect)
            if scroll is None:
                return
            for node, role in (
                (scroll.viewport, "Viewport"),
                (scroll.content, "Content"),
                (scroll.horizontal_scrollbar, "H_Scrollbar"),
                (scroll.vertical_scrollbar, "V_Scrollbar"),
            ):
                if node is not None:
                    self._rename(node, child_name(role))
        elif capability != Capability.PANEL:
            # Panels own arbitrary content, only leaf-like widgets rename their parts
            for node in self._descendants_with(parent, ("Text", "RichText")):
                self._rename(node, child_name("Text"))
            for node in self._descendants_with(parent, ("Image", "RawImage")):
                if not any(node.has_component(name) for name in ("Button", "Toggle", "Slider")):
                    self._rename(node, child_name("Image"))

    def original_name(self, node: SceneNode) -> Optional[str]:
        entry = self._original_names.get(node.instance_key)
        return entry[1] if entry else None

    def restore(self, node: SceneNode) -> bool:
        entry = self._original_names.pop(node.instance_key, None)
        if entry is None:
            return False
        node.rename(entry[1])
        return True

    def restore_all(self) -> int:
        restored = 0
        for node, _ in list(self._original_names.values()):
            if not node.destroyed and self.restore(node):
                restored += 1
        self._original_names.clear()
        return restored

    def _standardize_recursively(self, node: SceneNode, force: bool):
        for child in list(node.children):
            self._standardize_recursively(child, force)
        self.standardize(node, force)

    def _descendants_with(self, parent: SceneNode, component_names) -> List[SceneNode]:
        found = []
        for node in parent.iter_subtree():
            if node is parent:
                continue
            if any(node.has_component(name) for name in component_names):
                found.append(node)
        return found

    def _rename(self, node: SceneNode, new_name: str) -> bool:
        if not new_name or node.name == new_name:
            return False
        if node.instance_key not in self._original_names:
            self._original_names[node.instance_key] = (node, node.name)
        self.reporter.info(f"{node.name} -> {new_name}")
        node.rename(new_name)
        self.renamed_count += 1
        return True
