from flowui.components.base_component import BaseComponent, UIEvent
from flowui.components.widgets import (
    COMPONENT_TYPES,
    Button,
    Canvas,
    CanvasGroup,
    Dropdown,
    Image,
    InputField,
    RawImage,
    RichText,
    Scrollbar,
    ScrollRect,
    Slider,
    Text,
    Toggle,
)

__all__ = [
    "BaseComponent",
    "UIEvent",
    "COMPONENT_TYPES",
    "Button",
    "Canvas",
    "CanvasGroup",
    "Dropdown",
    "Image",
    "InputField",
    "RawImage",
    "RichText",
    "Scrollbar",
    "ScrollRect",
    "Slider",
    "Text",
    "Toggle",
]
