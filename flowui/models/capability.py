"""
UI capabilities - the closed set of roles a node can play.

Every node is classified into exactly one Capability by a single ordered
probe. The tables below drive naming (type words), library generation
(accessor types) and handler generation (event signatures).
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple


class Capability(str, Enum):
    BUTTON = "Button"
    TEXT = "Text"
    RICH_TEXT = "RichText"
    TOGGLE = "Toggle"
    INPUT_FIELD = "InputField"
    SLIDER = "Slider"
    DROPDOWN = "Dropdown"
    SCROLL_AREA = "ScrollArea"
    IMAGE = "Image"
    RAW_IMAGE = "RawImage"
    PANEL = "Panel"
    CANVAS = "Canvas"
    CANVAS_GROUP = "CanvasGroup"
    UNKNOWN = "Unknown"

    @property
    def category(self) -> str:
        return self.value


PANEL_WORD = "Panel"

# Ordered probe: (component type names, capability). First match wins.
# Interactive widgets come before Text/Image since they usually carry an Image too.
_PROBE_ORDER: Tuple[Tuple[Tuple[str, ...], Capability], ...] = (
    (("Button",), Capability.BUTTON),
    (("Toggle",), Capability.TOGGLE),
    (("Slider",), Capability.SLIDER),
    (("Dropdown",), Capability.DROPDOWN),
    (("InputField",), Capability.INPUT_FIELD),
    (("ScrollRect", "Scrollbar"), Capability.SCROLL_AREA),
    (("Text",), Capability.TEXT),
    (("RichText",), Capability.RICH_TEXT),
    (("Image",), Capability.IMAGE),
    (("RawImage",), Capability.RAW_IMAGE),
    (("Canvas",), Capability.CANVAS),
    (("CanvasGroup",), Capability.CANVAS_GROUP),
)


def looks_like_panel_name(name: str) -> bool:
    return name.lower().endswith(PANEL_WORD.lower())


def classify_node(node) -> Capability:
    """Classify a scene node into exactly one capability.

    An Image on a non-leaf node, or on a node whose name ends with "Panel",
    is a Panel rather than a plain Image.
    """
    for component_names, capability in _PROBE_ORDER:
        if any(node.has_component(name) for name in component_names):
            if capability == Capability.IMAGE and (not node.is_leaf or looks_like_panel_name(node.name)):
                return Capability.PANEL
            return capability
    return Capability.UNKNOWN


# Naming: word appended to canonical names. None = never renamed.
TYPE_WORDS: Dict[Capability, Optional[str]] = {
    Capability.BUTTON: "Button",
    Capability.TOGGLE: "Toggle",
    Capability.SLIDER: "Slider",
    Capability.DROPDOWN: "Dropdown",
    Capability.INPUT_FIELD: "InputField",
    Capability.SCROLL_AREA: "ScrollView",
    Capability.TEXT: "Text",
    Capability.RICH_TEXT: "Text",
    Capability.IMAGE: "Image",
    Capability.RAW_IMAGE: "Image",
    Capability.PANEL: "Panel",
    Capability.CANVAS: None,
    Capability.CANVAS_GROUP: None,
    Capability.UNKNOWN: None,
}


def type_word(capability: Capability) -> Optional[str]:
    return TYPE_WORDS.get(capability)


# Library generation: accessor type per capability (class names from flowui.components)
ACCESSOR_TYPES: Dict[Capability, str] = {
    Capability.BUTTON: "Button",
    Capability.TEXT: "Text",
    Capability.RICH_TEXT: "RichText",
    Capability.TOGGLE: "Toggle",
    Capability.INPUT_FIELD: "InputField",
    Capability.SLIDER: "Slider",
    Capability.DROPDOWN: "Dropdown",
    Capability.SCROLL_AREA: "ScrollRect",
    Capability.IMAGE: "Image",
    Capability.RAW_IMAGE: "RawImage",
    Capability.PANEL: "SceneNode",
    Capability.CANVAS: "Canvas",
    Capability.CANVAS_GROUP: "CanvasGroup",
    Capability.UNKNOWN: "SceneNode",
}


def accessor_type_for(capability: Capability, node=None) -> str:
    """Component class a generated accessor fetches.

    A scroll area classified from a bare Scrollbar has no ScrollRect to return,
    so its accessor fetches the Scrollbar instead.
    """
    if (
        capability == Capability.SCROLL_AREA
        and node is not None
        and not node.has_component("ScrollRect")
        and node.has_component("Scrollbar")
    ):
        return "Scrollbar"
    return ACCESSOR_TYPES[capability]


class HandlerSpec(NamedTuple):
    suffix: str           # method name suffix, e.g. "clicked"
    event: str            # UIEvent attribute on the component
    parameter: str        # "" for no-argument handlers
    parameter_type: str
    verb: str             # used in generated log lines


# Capabilities that fire events, in the order handler code is emitted
HANDLER_SPECS: Dict[Capability, HandlerSpec] = {
    Capability.BUTTON: HandlerSpec("clicked", "on_click", "", "", "clicked"),
    Capability.TOGGLE: HandlerSpec("value_changed", "on_value_changed", "is_on", "bool", "toggled to"),
    Capability.SLIDER: HandlerSpec("value_changed", "on_value_changed", "value", "float", "value changed to"),
    Capability.INPUT_FIELD: HandlerSpec("text_changed", "on_value_changed", "text", "str", "text changed to"),
    Capability.DROPDOWN: HandlerSpec("selection_changed", "on_value_changed", "index", "int", "selection changed to index"),
}


def handler_arity(capability: Capability) -> int:
    spec = HANDLER_SPECS.get(capability)
    if spec is None:
        raise KeyError(f"{capability.value} does not fire events")
    return 1 if spec.parameter else 0


def parse_capability(value: str) -> Capability:
    try:
        return Capability(value)
    except ValueError:
        return Capability.UNKNOWN
