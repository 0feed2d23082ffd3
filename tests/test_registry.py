import pytest

from conftest import node
from flowui.components import Button, Image, Slider, Text
from flowui.core.registry import ReferenceRegistry, load_registry, save_registry
from flowui.core.scene import Scene, SceneNode
from flowui.diagnostics import ConfigError, IssueKind
from flowui.models.capability import Capability

PLAY_PATH = "Canvas/Main_Menu_Panel/Main_Menu_Panel_Play_Button"
PANEL_PATH = "Canvas/Main_Menu_Panel"


class TestAddAndLookup:
    def test_add_classifies_and_indexes(self, menu_registry, menu_scene):
        reference = menu_registry.get_reference(PLAY_PATH)
        assert reference.capability == Capability.BUTTON
        assert reference.category == "Button"
        assert menu_registry.lookup(Capability.BUTTON, PLAY_PATH) is menu_scene.find_by_path(PLAY_PATH)

    def test_image_with_children_is_panel(self, menu_registry):
        assert menu_registry.get_reference(PANEL_PATH).capability == Capability.PANEL

    def test_lookup_by_instance_key(self, menu_registry, menu_scene):
        play = menu_scene.find_by_path(PLAY_PATH)
        assert menu_registry.lookup_by_instance_key(play.instance_key) is play

    def test_duplicate_path_is_rejected(self, menu_registry, menu_scene, reporter):
        size = len(menu_registry)
        assert menu_registry.add(menu_scene.find_by_path(PLAY_PATH)) is None
        assert len(menu_registry) == size
        assert reporter.of_kind(IssueKind.DUPLICATE)

    def test_same_path_from_different_node_is_rejected(self, menu_registry, menu_scene, reporter):
        panel = menu_scene.find_by_path(PANEL_PATH)
        twin = panel.add_child(SceneNode("Main_Menu_Panel_Play_Button", [Button()]))
        size = len(menu_registry)
        assert menu_registry.add(twin) is None
        assert len(menu_registry) == size
        assert reporter.of_kind(IssueKind.DUPLICATE)[-1].subject == PLAY_PATH

    def test_empty_name_is_malformed(self, reporter):
        scene = Scene("Broken")
        nameless = scene.add_root(SceneNode("", [Button()]))
        registry = ReferenceRegistry(scene, reporter=reporter)
        assert registry.add(nameless) is None
        assert len(registry) == 0
        assert reporter.errors[0].kind == IssueKind.MALFORMED

    def test_add_none_is_reported(self, reporter):
        registry = ReferenceRegistry(reporter=reporter)
        assert registry.add(None) is None
        assert reporter.errors

    def test_lookup_miss_returns_none_with_warning(self, menu_registry, reporter):
        assert menu_registry.lookup(Capability.BUTTON, "Canvas/Nope") is None
        assert reporter.of_kind(IssueKind.LOOKUP_MISS)[-1].subject == "Canvas/Nope"

    def test_lookup_with_wrong_capability(self, menu_registry, reporter):
        assert menu_registry.lookup(Capability.SLIDER, PLAY_PATH) is None
        assert reporter.of_kind(IssueKind.LOOKUP_MISS)

    def test_categories_keep_discovery_order(self, menu_registry):
        names = {category.name: [r.name for r in category.references] for category in menu_registry.all_categories()}
        assert names["Panel"] == ["Main_Menu_Panel", "Settings_Panel"]
        assert names["Text"] == ["Main_Menu_Panel_Play_Button_Text"]

    def test_custom_probe(self, reporter):
        scene = Scene("Probe")
        root = scene.add_root(node("Thing", Image))
        registry = ReferenceRegistry(scene, reporter=reporter)
        reference = registry.add(root, probe=lambda n: Capability.RAW_IMAGE)
        assert reference.capability == Capability.RAW_IMAGE

    def test_add_with_standardize_renames_first(self, reporter):
        scene = Scene("Std")
        canvas = scene.add_root(SceneNode("Canvas"))
        play = canvas.add_child(node("Play (1)", Button, children=[node("Text (Legacy)", Text)]))
        registry = ReferenceRegistry(scene, reporter=reporter)

        reference = registry.add(play, standardize=True)

        assert reference.name == "Play_Button"
        assert reference.canonical_path == "Canvas/Play_Button"
        assert play.children[0].name == "Play_Button_Text"

    def test_rejected_duplicate_is_not_renamed(self, reporter):
        scene = Scene("Std")
        canvas = scene.add_root(SceneNode("Canvas"))
        play = canvas.add_child(node("Play", Button, children=[node("Text (Legacy)", Text)]))
        registry = ReferenceRegistry(scene, reporter=reporter)
        registry.add(play)

        assert registry.add(play, standardize=True) is None
        assert play.name == "Play"
        assert play.children[0].name == "Text (Legacy)"
        assert [r.canonical_path for r in registry.references()] == ["Canvas/Play"]
        assert reporter.of_kind(IssueKind.DUPLICATE)[-1].subject == "Canvas/Play"

    def test_rename_onto_registered_path_is_rejected(self, reporter):
        scene = Scene("Std")
        canvas = scene.add_root(SceneNode("Canvas"))
        registered = canvas.add_child(node("Play_Button", Button))
        other = canvas.add_child(node("Play", Button))
        registry = ReferenceRegistry(scene, reporter=reporter)
        registry.add(registered)

        assert registry.add(other, standardize=True) is None
        assert other.name == "Play"
        assert len(registry) == 1
        assert reporter.of_kind(IssueKind.DUPLICATE)[-1].subject == "Canvas/Play_Button"


class TestRemove:
    def test_remove_by_path(self, menu_registry):
        size = len(menu_registry)
        assert menu_registry.remove(PLAY_PATH) is True
        assert len(menu_registry) == size - 1
        assert PLAY_PATH not in menu_registry
        assert all(r.canonical_path != PLAY_PATH for c in menu_registry.all_categories() for r in c.references)

    def test_remove_by_instance_key(self, menu_registry, menu_scene):
        play = menu_scene.find_by_path(PLAY_PATH)
        assert menu_registry.remove(play.instance_key) is True
        assert not menu_registry.contains(instance_key=play.instance_key)

    def test_remove_absent_warns(self, menu_registry, reporter):
        assert menu_registry.remove("Canvas/Missing") is False
        assert reporter.of_kind(IssueKind.LOOKUP_MISS)

    @pytest.mark.parametrize("path", ["", "   ", "Canvas//Play", "/Canvas"])
    def test_remove_malformed_path(self, menu_registry, reporter, path):
        assert menu_registry.remove(path) is False
        assert reporter.errors[-1].kind == IssueKind.MALFORMED

    def test_readd_after_remove(self, menu_registry, menu_scene):
        menu_registry.remove(PLAY_PATH)
        assert menu_registry.add(menu_scene.find_by_path(PLAY_PATH)) is not None


class TestPanels:
    @pytest.fixture
    def panels(self, reporter):
        scene = Scene("Panels")
        canvas = scene.add_root(SceneNode("Canvas"))
        registry = ReferenceRegistry(scene, reporter=reporter)
        created = {}
        for name in ("P_Panel", "Q_Panel", "R_Panel"):
            created[name[0]] = canvas.add_child(node(name, Image))
            registry.add(created[name[0]])
        return registry, created

    def test_exclusive_activation(self, panels):
        registry, p = panels
        registry.activate(p["Q"], exclusive=False)
        registry.activate(p["R"], exclusive=False)

        registry.activate(p["P"], exclusive=True)

        assert registry.active_panels == [p["P"]]
        assert registry.last_active_panel is p["P"]
        assert p["P"].active and not p["Q"].active and not p["R"].active

    def test_keep_last_survives_exclusive_activation(self, panels):
        registry, p = panels
        registry.activate(p["Q"], exclusive=False)
        registry.activate(p["R"], exclusive=False)

        registry.activate(p["P"], exclusive=True, keep_last=True)

        assert set(registry.active_panels) == {p["P"], p["R"]}
        assert registry.last_active_panel is p["P"]

    def test_deactivate_clears_marker(self, panels):
        registry, p = panels
        registry.activate(p["P"])
        registry.deactivate(p["P"])
        assert registry.last_active_panel is None
        assert registry.active_panels == []

    def test_marker_always_in_active_set(self, panels):
        registry, p = panels
        for step in (p["P"], p["Q"], p["R"]):
            registry.activate(step, exclusive=False)
            assert registry.last_active_panel in registry.active_panels
        registry.deactivate(p["Q"])
        assert registry.last_active_panel in registry.active_panels

    def test_set_panel_active_by_path(self, panels):
        registry, p = panels
        assert registry.set_panel_active("Canvas/Q_Panel", True) is True
        assert registry.is_panel_visible("Canvas/Q_Panel")
        assert registry.set_panel_active("Canvas/Q_Panel", False) is True
        assert not p["Q"].active

    def test_toggle_panel(self, panels):
        registry, p = panels
        registry.toggle_panel("Canvas/P_Panel")
        assert not p["P"].active
        registry.toggle_panel("Canvas/P_Panel")
        assert p["P"].active
        assert registry.last_active_panel is p["P"]

    def test_get_panel_rejects_non_panels(self, menu_registry, reporter):
        assert menu_registry.get_panel(PLAY_PATH) is None
        assert reporter.of_kind(IssueKind.LOOKUP_MISS)

    def test_removing_active_panel_clears_state(self, panels):
        registry, p = panels
        registry.activate(p["P"])
        registry.remove("Canvas/P_Panel")
        assert registry.active_panels == []
        assert registry.last_active_panel is None


class TestComponents:
    def test_get_ui_component(self, menu_registry):
        assert isinstance(menu_registry.get_ui_component(PLAY_PATH, Button), Button)

    def test_get_ui_component_missing_component(self, menu_registry, reporter):
        assert menu_registry.get_ui_component(PLAY_PATH, Slider) is None
        assert "Slider" in reporter.warnings[-1].message

    def test_get_ui_component_by_instance_key(self, menu_registry, menu_scene):
        play = menu_scene.find_by_path(PLAY_PATH)
        assert menu_registry.get_ui_component(play.instance_key, Button, is_instance_key=True) is play.get_component(Button)


class TestBindingAndPersistence:
    def test_save_and_load_roundtrip(self, menu_registry, menu_scene, tmp_path, reporter):
        path = tmp_path / "registry.yaml"
        save_registry(menu_registry, path)

        loaded = load_registry(path, reporter)
        assert loaded.scene_name == "SampleScene"
        assert len(loaded) == len(menu_registry)
        assert loaded.find_missing_references() == list(loaded.references())

        assert loaded.bind_scene(menu_scene) == len(menu_registry)
        assert loaded.lookup(Capability.BUTTON, PLAY_PATH) is menu_scene.find_by_path(PLAY_PATH)

    def test_load_missing_file_gives_empty_registry(self, tmp_path):
        assert len(load_registry(tmp_path / "nope.yaml")) == 0

    def test_load_invalid_file(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text("schema_version: '9'\ncategories: []\n")
        with pytest.raises(ConfigError):
            load_registry(path)

    def test_bind_reports_missing_nodes(self, menu_registry, menu_scene, reporter):
        menu_scene.find_by_path(PLAY_PATH).destroy()
        bound = menu_registry.bind_scene(menu_scene)

        missing = menu_registry.find_missing_references()
        assert {r.name for r in missing} == {"Main_Menu_Panel_Play_Button", "Main_Menu_Panel_Play_Button_Text"}
        assert bound == len(menu_registry) - 2
        assert PLAY_PATH not in menu_registry
        assert any(d.subject == PLAY_PATH for d in reporter.of_kind(IssueKind.MISSING_REFERENCE))

    def test_repair_by_name_after_move(self, menu_registry, menu_scene):
        volume = menu_scene.find_by_path("Canvas/Main_Menu_Panel/Main_Menu_Panel_Volume_Slider")
        volume.set_parent(menu_scene.find_by_path("Canvas/Settings_Panel"))
        menu_registry.bind_scene(menu_scene)
        assert len(menu_registry.find_missing_references()) == 1

        assert menu_registry.repair_missing_references(menu_scene) == 1
        assert menu_registry.find_missing_references() == []
        assert "Canvas/Settings_Panel/Main_Menu_Panel_Volume_Slider" in menu_registry

    def test_remove_missing_references(self, menu_registry, menu_scene):
        menu_scene.find_by_path(PLAY_PATH).destroy()
        menu_registry.bind_scene(menu_scene)
        assert menu_registry.remove_missing_references() == 2
        assert menu_registry.find_missing_references() == []

    def test_refresh_paths_after_rename(self, menu_registry, menu_scene):
        menu_scene.find_by_path(PANEL_PATH).rename("Main_Panel")
        assert menu_registry.refresh_paths() == 4
        assert "Canvas/Main_Panel/Main_Menu_Panel_Play_Button" in menu_registry
        assert menu_registry.get_reference("Canvas/Main_Panel").name == "Main_Panel"

    def test_find_duplicate_names(self, menu_registry, menu_scene):
        settings_panel = menu_scene.find_by_path("Canvas/Settings_Panel")
        menu_registry.add(settings_panel.add_child(node("Main_Menu_Panel_Volume_Slider", Slider)))
        assert menu_registry.find_duplicate_names() == ["Main_Menu_Panel_Volume_Slider"]

    def test_dispose_clears_indices(self, menu_registry):
        menu_registry.dispose()
        assert PLAY_PATH not in menu_registry
        assert menu_registry.active_panels == []
