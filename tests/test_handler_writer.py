import pytest

from conftest import node
from flowui.components import Button, Slider
from flowui.core.runtime import load_generated_unit
from flowui.dev.file_output import WriteDecision, always
from flowui.dev.handler_writer import (
    diff_signatures,
    extract_handler_names,
    generate_handlers,
    generate_panel_handlers,
    handler_method_name,
    handler_paths,
)
from flowui.dev.library_writer import write_library
from flowui.diagnostics import IssueKind, PreconditionError
from flowui.models.capability import Capability

PLAY_HOOK = "on_main_menu_panel_play_button_clicked"
VOLUME_HOOK = "on_main_menu_panel_volume_slider_value_changed"
MUSIC_HOOK = "on_settings_panel_music_toggle_value_changed"
QUIT_HOOK = "on_main_menu_panel_quit_button_clicked"


@pytest.fixture
def generated(menu_registry, settings, reporter):
    """Library written, handlers generated once"""
    write_library(menu_registry, settings)
    return generate_handlers(menu_registry, settings, reporter)


def regenerate(registry, settings, reporter):
    write_library(registry, settings, always(WriteDecision.OVERWRITE))
    return generate_handlers(registry, settings, reporter)


def test_handler_method_name():
    assert handler_method_name(Capability.BUTTON, "Main_Menu_Panel_Play_Button") == PLAY_HOOK
    assert handler_method_name(Capability.DROPDOWN, "Difficulty_Dropdown") == "on_difficulty_dropdown_selection_changed"


def test_extract_handler_names():
    text = "class A:\n    def on_a_clicked(self):\n        pass\n\n    def _setup_buttons(self):\n        pass\n"
    assert extract_handler_names(text) == {"on_a_clicked"}


def test_diff_signatures():
    diff = diff_signatures({"on_a", "on_b"}, {"on_b", "on_c"})
    assert diff.added == ["on_c"]
    assert diff.removed == ["on_a"]
    assert diff.has_changes
    assert not diff_signatures({"on_a"}, {"on_a"}).has_changes


def test_library_is_required(menu_registry, settings, reporter):
    with pytest.raises(PreconditionError):
        generate_handlers(menu_registry, settings, reporter)
    assert reporter.of_kind(IssueKind.PRECONDITION)
    assert not settings.handlers_dir.exists()


def test_first_generation(generated, settings):
    machine_path, user_path = handler_paths(settings, "SampleScene")
    assert generated.machine_path == machine_path
    assert machine_path.name == "SampleSceneUIHandler.g.py"
    assert user_path.name == "SampleSceneUIHandler.py"
    assert generated.user_created
    assert not generated.diff.has_changes

    machine = machine_path.read_text(encoding="utf-8")
    assert extract_handler_names(machine) == {PLAY_HOOK, VOLUME_HOOK, MUSIC_HOOK}
    assert "MIGRATION HINTS" not in machine
    assert "✨ NEW" not in machine
    assert "load_generated_unit(__file__, '../ui/UI_Library_SampleScene.py')" in machine
    assert f"SampleScene.UI.MainMenu.Play_Button.on_click.add_listener(self.{PLAY_HOOK})" in machine
    assert f"def {VOLUME_HOOK}(self, value: float):" in machine

    user = user_path.read_text(encoding="utf-8")
    assert "class SampleSceneUIHandler(_generated.SampleSceneUIHandlerBase):" in user
    assert "# Example: SampleScene.UI.MainMenu.show()" in user


def test_regeneration_is_stable(generated, menu_registry, settings, reporter):
    first = generated.machine_path.read_text(encoding="utf-8")

    result = regenerate(menu_registry, settings, reporter)

    assert not result.diff.has_changes
    assert not result.user_created
    assert result.machine_path.read_text(encoding="utf-8") == first


def test_added_element_produces_hints(generated, menu_registry, menu_scene, settings, reporter):
    user_before = generated.user_path.read_text(encoding="utf-8")
    panel = menu_scene.find_by_path("Canvas/Main_Menu_Panel")
    menu_registry.add(panel.add_child(node("Main_Menu_Panel_Quit_Button", Button)))

    result = regenerate(menu_registry, settings, reporter)

    assert result.diff.added == [QUIT_HOOK]
    assert result.diff.removed == []
    machine = result.machine_path.read_text(encoding="utf-8")
    assert "# ADDED - Implement these hooks in SampleSceneUIHandler.py:" in machine
    assert f"#   - {QUIT_HOOK}()" in machine
    assert f"    # ✨ NEW - Implement this in SampleSceneUIHandler.py\n    def {QUIT_HOOK}(self):" in machine
    assert machine.count("✨ NEW") == 1
    assert result.user_path.read_text(encoding="utf-8") == user_before


def test_removed_element_produces_hints(generated, menu_registry, settings, reporter):
    menu_registry.remove("Canvas/Main_Menu_Panel/Main_Menu_Panel_Volume_Slider")

    result = regenerate(menu_registry, settings, reporter)

    assert result.diff.removed == [VOLUME_HOOK]
    machine = result.machine_path.read_text(encoding="utf-8")
    assert "# REMOVED - These hooks are no longer called" in machine
    assert f"def {VOLUME_HOOK}(" not in machine


def test_hints_are_not_carried_to_next_run(generated, menu_registry, menu_scene, settings, reporter):
    panel = menu_scene.find_by_path("Canvas/Main_Menu_Panel")
    menu_registry.add(panel.add_child(node("Main_Menu_Panel_Quit_Button", Button)))
    regenerate(menu_registry, settings, reporter)

    result = regenerate(menu_registry, settings, reporter)

    assert not result.diff.has_changes
    assert "MIGRATION HINTS" not in result.machine_path.read_text(encoding="utf-8")


def test_duplicate_hooks_are_reported(menu_registry, menu_scene, settings, reporter):
    settings_panel = menu_scene.find_by_path("Canvas/Settings_Panel")
    menu_registry.add(settings_panel.add_child(node("Main_Menu_Panel_Volume_Slider", Slider)))
    write_library(menu_registry, settings)

    result = generate_handlers(menu_registry, settings, reporter)

    machine = result.machine_path.read_text(encoding="utf-8")
    assert machine.count(f"def {VOLUME_HOOK}(") == 1
    assert reporter.of_kind(IssueKind.DUPLICATE)


def test_generated_handler_runs(generated, menu_registry, menu_scene, capsys):
    module = load_generated_unit(generated.user_path, generated.user_path.name)
    handler = module.SampleSceneUIHandler(menu_registry)

    handler.initialize()
    play = menu_scene.find_by_path("Canvas/Main_Menu_Panel/Main_Menu_Panel_Play_Button").get_component(Button)
    volume = menu_scene.find_by_path("Canvas/Main_Menu_Panel/Main_Menu_Panel_Volume_Slider").get_component(Slider)
    play.click()
    volume.set_value(0.5)

    output = capsys.readouterr().out
    assert "[SampleSceneUIHandler] Initialized" in output
    assert "Main_Menu_Panel_Play_Button clicked" in output
    assert "Main_Menu_Panel_Volume_Slider value changed to 0.5" in output

    handler.cleanup()
    assert play.on_click.listener_count == 0
    assert volume.on_value_changed.listener_count == 0
    assert not handler.is_initialized


def test_initialize_twice_wires_once(generated, menu_registry, menu_scene):
    module = load_generated_unit(generated.user_path, generated.user_path.name)
    handler = module.SampleSceneUIHandler(menu_registry)

    handler.initialize()
    handler.initialize()

    play = menu_scene.find_by_path("Canvas/Main_Menu_Panel/Main_Menu_Panel_Play_Button").get_component(Button)
    assert play.on_click.listener_count == 1


def test_keyword_group_units_compile(menu_registry, menu_scene, settings, reporter):
    menu_registry.add(menu_scene.find_by_path("Canvas").add_child(node("None_Button", Button)))
    write_library(menu_registry, settings)

    result = generate_handlers(menu_registry, settings, reporter)

    machine = result.machine_path.read_text(encoding="utf-8")
    assert "SampleScene.UI.None_.Button.on_click.add_listener(self.on_none_button_clicked)" in machine
    compile(machine, str(result.machine_path), "exec")
    compile(result.user_path.read_text(encoding="utf-8"), str(result.user_path), "exec")


class TestPanelHandlers:
    @pytest.fixture
    def written(self, menu_registry, settings, reporter):
        write_library(menu_registry, settings)
        return generate_panel_handlers(menu_registry, settings, reporter=reporter)

    def test_one_file_per_panel(self, written, settings):
        assert [path.name for path in written.written] == ["MainMenuPanelHandler.py", "SettingsPanelHandler.py"]
        assert all(path.parent == settings.panel_handlers_dir for path in written.written)
        assert written.skipped == []

    def test_panel_handler_text(self, written):
        text = written.written[0].read_text(encoding="utf-8")

        assert "class MainMenuPanelHandler:" in text
        assert "# Panel: Main_Menu_Panel" in text
        assert "PANEL_PATH = 'Canvas/Main_Menu_Panel'" in text
        assert "load_generated_unit(__file__, '../../ui/UI_Library_SampleScene.py')" in text
        assert f"SampleScene.UI.MainMenu.Play_Button.on_click.add_listener(self.{PLAY_HOOK})" in text
        assert extract_handler_names(text) == {PLAY_HOOK, VOLUME_HOOK}
        assert "_setup_toggles" not in text
        assert "        SampleScene.UI.MainMenu.show(hide_others)" in text
        compile(text, str(written.written[0]), "exec")

    def test_panel_class_prefix(self, menu_registry, settings, reporter):
        settings.panel_handlers.class_prefix = "Game"
        write_library(menu_registry, settings)

        result = generate_panel_handlers(menu_registry, settings, reporter=reporter, panels=["MainMenu"])

        assert [path.name for path in result.written] == ["GameMainMenuPanelHandler.py"]
        assert "class GameMainMenuPanelHandler:" in result.written[0].read_text(encoding="utf-8")

    def test_existing_file_is_kept(self, written, menu_registry, settings, reporter):
        path = written.written[0]
        path.write_text("# mine\n", encoding="utf-8")

        again = generate_panel_handlers(menu_registry, settings, reporter=reporter)

        assert path in again.skipped
        assert again.written == []
        assert path.read_text(encoding="utf-8") == "# mine\n"

    def test_backup_and_overwrite(self, written, menu_registry, settings, reporter):
        path = written.written[0]
        path.write_text("# mine\n", encoding="utf-8")

        again = generate_panel_handlers(
            menu_registry, settings, always(WriteDecision.BACKUP_AND_OVERWRITE), reporter, panels=["MainMenu"]
        )

        assert again.written == [path]
        backups = list(path.parent.glob("MainMenuPanelHandler_*.bak.py"))
        assert len(backups) == 1
        assert backups[0].read_text(encoding="utf-8") == "# mine\n"
        assert "class MainMenuPanelHandler:" in path.read_text(encoding="utf-8")

    def test_cancel_counts_as_skipped(self, written, menu_registry, settings, reporter):
        again = generate_panel_handlers(menu_registry, settings, always(WriteDecision.CANCEL), reporter)
        assert again.written == []
        assert len(again.skipped) == 2

    def test_select_by_panel_name(self, menu_registry, settings, reporter):
        write_library(menu_registry, settings)

        result = generate_panel_handlers(menu_registry, settings, reporter=reporter, panels=["Settings_Panel", "Nope"])

        assert [path.name for path in result.written] == ["SettingsPanelHandler.py"]
        assert reporter.of_kind(IssueKind.LOOKUP_MISS)[-1].subject == "Nope"

    def test_library_is_required(self, menu_registry, settings, reporter):
        with pytest.raises(PreconditionError):
            generate_panel_handlers(menu_registry, settings, reporter=reporter)
        assert reporter.of_kind(IssueKind.PRECONDITION)
        assert not settings.panel_handlers_dir.exists()

    def test_panel_handler_runs(self, written, menu_registry, menu_scene, capsys):
        module = load_generated_unit(written.written[0], written.written[0].name)
        handler = module.MainMenuPanelHandler(menu_registry)

        handler.initialize()
        play = menu_scene.find_by_path("Canvas/Main_Menu_Panel/Main_Menu_Panel_Play_Button").get_component(Button)
        play.click()

        output = capsys.readouterr().out
        assert "[MainMenuPanelHandler] Initialized" in output
        assert "Main_Menu_Panel_Play_Button clicked" in output

        handler.show_panel()
        assert handler.is_panel_active
        handler.hide_panel()
        assert not handler.is_panel_active
        handler.toggle_panel()
        assert handler.is_panel_active

        handler.cleanup()
        assert play.on_click.listener_count == 0
        assert not handler.is_initialized

    def test_unregistered_panel_is_not_initialized(self, written, menu_registry, capsys):
        module = load_generated_unit(written.written[0], written.written[0].name)
        menu_registry.remove("Canvas/Main_Menu_Panel")
        handler = module.MainMenuPanelHandler(menu_registry)

        handler.initialize()

        assert not handler.is_initialized
        assert "Panel 'Main_Menu_Panel' is not registered" in capsys.readouterr().out
