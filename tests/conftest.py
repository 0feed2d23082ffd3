import pytest

from flowui.components import Button, Canvas, Image, Slider, Text, Toggle
from flowui.config import FlowUISettings
from flowui.core.registry import ReferenceRegistry
from flowui.core.runtime import forget_generated_units
from flowui.core.scene import Scene, SceneNode
from flowui.diagnostics import Reporter


def node(name, *components, children=()):
    """SceneNode with fresh component instances and the given children"""
    created = SceneNode(name, [component() for component in components])
    for child in children:
        created.add_child(child)
    return created


@pytest.fixture
def reporter():
    return Reporter(echo=False)


@pytest.fixture
def menu_scene():
    """
    Canvas
      Main_Menu_Panel                       (Panel)
        Main_Menu_Panel_Play_Button         (Button)
          Main_Menu_Panel_Play_Button_Text  (Text)
        Main_Menu_Panel_Volume_Slider       (Slider)
      Settings_Panel                        (Panel)
        Settings_Panel_Music_Toggle         (Toggle)
    """
    scene = Scene("SampleScene")
    scene.add_root(
        node(
            "Canvas",
            Canvas,
            children=[
                node(
                    "Main_Menu_Panel",
                    Image,
                    children=[
                        node(
                            "Main_Menu_Panel_Play_Button",
                            Button,
                            Image,
                            children=[node("Main_Menu_Panel_Play_Button_Text", Text)],
                        ),
                        node("Main_Menu_Panel_Volume_Slider", Slider),
                    ],
                ),
                node("Settings_Panel", Image, children=[node("Settings_Panel_Music_Toggle", Toggle)]),
            ],
        )
    )
    return scene


@pytest.fixture
def menu_registry(menu_scene, reporter):
    registry = ReferenceRegistry(menu_scene, reporter=reporter)
    for scene_node in menu_scene.snapshot():
        if scene_node.name != "Canvas":
            registry.add(scene_node)
    return registry


@pytest.fixture
def settings(tmp_path):
    return FlowUISettings(base_dir=tmp_path)


@pytest.fixture(autouse=True)
def _fresh_generated_units():
    yield
    forget_generated_units()
