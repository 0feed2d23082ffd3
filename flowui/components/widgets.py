"""
Concrete UI components a scene node can carry.

Interactive widgets expose UIEvent objects that the generated handler code
wires listeners to. Composite widgets keep references to the child nodes that
make up their fixed sub-tree (placeholder, checkmark, fill, handle, ...).
"""

from typing import Any, Dict, List, Type

from flowui.components.base_component import BaseComponent, UIEvent


class Button(BaseComponent):
    type_name = "Button"

    def __init__(self):
        super().__init__()
        self.interactable = True
        self.on_click = UIEvent("on_click")

    def click(self):
        if self.interactable:
            self.on_click.invoke()

    def state(self):
        return {"interactable": self.interactable}


class Text(BaseComponent):
    type_name = "Text"

    def __init__(self):
        super().__init__()
        self.text = ""

    def state(self):
        return {"text": self.text} if self.text else {}


class RichText(Text):
    type_name = "RichText"


class Toggle(BaseComponent):
    type_name = "Toggle"
    node_refs = ("graphic",)

    def __init__(self):
        super().__init__()
        self.is_on = False
        self.graphic = None
        self.on_value_changed = UIEvent("on_value_changed")

    def set_is_on(self, value: bool):
        value = bool(value)
        if value != self.is_on:
            self.is_on = value
            self.on_value_changed.invoke(value)

    def state(self):
        return {"is_on": self.is_on}


class InputField(BaseComponent):
    type_name = "InputField"
    node_refs = ("text_component", "placeholder")

    def __init__(self):
        super().__init__()
        self.text = ""
        self.text_component = None
        self.placeholder = None
        self.on_value_changed = UIEvent("on_value_changed")

    def set_text(self, value: str):
        if value != self.text:
            self.text = value
            self.on_value_changed.invoke(value)

    def state(self):
        return {"text": self.text} if self.text else {}


class Slider(BaseComponent):
    type_name = "Slider"
    node_refs = ("fill_rect", "handle_rect")

    def __init__(self):
        super().__init__()
        self.min_value = 0.0
        self.max_value = 1.0
        self.value = 0.0
        self.fill_rect = None
        self.handle_rect = None
        self.on_value_changed = UIEvent("on_value_changed")

    def set_value(self, value: float):
        value = min(max(float(value), self.min_value), self.max_value)
        if value != self.value:
            self.value = value
            self.on_value_changed.invoke(value)

    def state(self):
        return {"min_value": self.min_value, "max_value": self.max_value, "value": self.value}


class Dropdown(BaseComponent):
    type_name = "Dropdown"

    def __init__(self):
        super().__init__()
        self.options: List[str] = []
        self.value = 0
        self.on_value_changed = UIEvent("on_value_changed")

    def select(self, index: int):
        if not 0 <= index < max(len(self.options), 1):
            raise IndexError(f"Dropdown option {index} out of range")
        if index != self.value:
            self.value = index
            self.on_value_changed.invoke(index)

    def state(self):
        return {"options": list(self.options), "value": self.value}


class ScrollRect(BaseComponent):
    type_name = "ScrollRect"
    node_refs = ("viewport", "content", "horizontal_scrollbar", "vertical_scrollbar")

    def __init__(self):
        super().__init__()
        self.viewport = None
        self.content = None
        self.horizontal_scrollbar = None
        self.vertical_scrollbar = None
        self.normalized_position = (0.0, 1.0)
        self.on_value_changed = UIEvent("on_value_changed")

    def scroll_to(self, x: float, y: float):
        self.normalized_position = (x, y)
        self.on_value_changed.invoke(self.normalized_position)


class Scrollbar(BaseComponent):
    type_name = "Scrollbar"

    def __init__(self):
        super().__init__()
        self.value = 0.0


class Image(BaseComponent):
    type_name = "Image"

    def __init__(self):
        super().__init__()
        self.sprite = None

    def state(self):
        return {"sprite": self.sprite} if self.sprite else {}


class RawImage(BaseComponent):
    type_name = "RawImage"

    def __init__(self):
        super().__init__()
        self.texture = None

    def state(self):
        return {"texture": self.texture} if self.texture else {}


class Canvas(BaseComponent):
    type_name = "Canvas"


class CanvasGroup(BaseComponent):
    type_name = "CanvasGroup"

    def __init__(self):
        super().__init__()
        self.alpha = 1.0
        self.interactable = True

    def state(self):
        return {"alpha": self.alpha, "interactable": self.interactable}


COMPONENT_TYPES: Dict[str, Type[BaseComponent]] = {
    component.type_name: component
    for component in (
        Button, Text, RichText, Toggle, InputField, Slider, Dropdown,
        ScrollRect, Scrollbar, Image, RawImage, Canvas, CanvasGroup,
    )
}


def create_component(spec: Any) -> BaseComponent:
    """Create a component from a YAML entry: either a bare type name or a mapping with 'type'."""
    if isinstance(spec, str):
        spec = {"type": spec}
    type_name = spec.get("type")
    if type_name not in COMPONENT_TYPES:
        raise ValueError(f"Unknown component type '{type_name}'")
    return COMPONENT_TYPES[type_name].from_dict(spec)
