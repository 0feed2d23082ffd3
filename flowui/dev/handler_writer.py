#!/usr/bin/env python3
"""
UI Handler Generator

Writes two files per scene:
1. <Prefix><Scene>UIHandler.g.py - listener wiring and no-op hooks, rewritten every run
2. <Prefix><Scene>UIHandler.py   - user subclass with hook stubs, created once and never touched again

The previous .g.py is scanned for hook names so the new one can list what
was added and removed since the last run.

Panel handlers are separate: one <Prefix><Group>PanelHandler.py per panel,
written once and then left to the user.
"""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from flowui.config import FlowUISettings
from flowui.core.naming import sanitize_identifier, to_snake_case
from flowui.core.registry import ReferenceRegistry
from flowui.diagnostics import IssueKind, PreconditionError, Reporter, ensure_reporter
from flowui.dev.file_output import Decider, write_unit
from flowui.dev.library_writer import PanelGroup, build_panel_groups, is_library_generated, library_path
from flowui.models.capability import HANDLER_SPECS, Capability, HandlerSpec

HOOK_PATTERN = re.compile(r"^\s*def\s+(on_\w+)\s*\(\s*self", re.MULTILINE)
RULE = "# ---------------------------------------------------"

# Setup method per capability, in wiring order
SETUP_METHODS: Dict[Capability, str] = {
    Capability.BUTTON: "_setup_buttons",
    Capability.TOGGLE: "_setup_toggles",
    Capability.SLIDER: "_setup_sliders",
    Capability.INPUT_FIELD: "_setup_input_fields",
    Capability.DROPDOWN: "_setup_dropdowns",
}


class HandlerSignature(BaseModel):
    """One expected hook: which element fires it and how it is called"""

    name: str
    capability: Capability
    element_name: str
    accessor: str  # dot path below the library module, e.g. UI.MainMenu.Play_Button

    @property
    def spec(self) -> HandlerSpec:
        return HANDLER_SPECS[self.capability]

    @property
    def parameters(self) -> str:
        spec = self.spec
        return f"self, {spec.parameter}: {spec.parameter_type}" if spec.parameter else "self"


class SignatureDiff(BaseModel):
    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)


class HandlerResult(BaseModel):
    machine_path: Path
    user_path: Path
    user_created: bool
    diff: SignatureDiff


def handler_method_name(capability: Capability, element_name: str) -> str:
    """on_<snake element name>_<suffix>, e.g. on_main_menu_panel_play_button_clicked."""
    return f"on_{to_snake_case(element_name)}_{HANDLER_SPECS[capability].suffix}"


def extract_handler_names(text: str) -> Set[str]:
    return set(HOOK_PATTERN.findall(text))


def read_previous_signatures(path) -> Optional[Set[str]]:
    """Hook names declared by an existing machine unit, or None when there is none."""
    machine_path = Path(path)
    if not machine_path.exists():
        return None
    try:
        with open(machine_path, "r", encoding="utf-8") as f:
            return extract_handler_names(f.read())
    except OSError as e:
        print(f"⚠️  Could not read {machine_path}: {e}")
        return set()


def collect_handler_signatures(
    groups: List[PanelGroup], reporter: Optional[Reporter] = None
) -> List[HandlerSignature]:
    """One signature per event-firing element, ordered by capability then hook name."""
    reporter = ensure_reporter(reporter)
    by_name: Dict[str, HandlerSignature] = {}
    for group in groups:
        for element in group.elements:
            capability = element.reference.capability
            if capability not in HANDLER_SPECS:
                continue
            name = handler_method_name(capability, element.reference.name)
            if name in by_name:
                reporter.warn(
                    IssueKind.DUPLICATE,
                    f"Hook '{name}' already wired, skipping '{element.reference.name}'",
                    element.reference.canonical_path,
                )
                continue
            by_name[name] = HandlerSignature(
                name=name,
                capability=capability,
                element_name=element.reference.name,
                accessor=f"UI.{group.class_name}.{element.property_name}",
            )

    order = list(HANDLER_SPECS)
    return sorted(by_name.values(), key=lambda s: (order.index(s.capability), s.name))


def diff_signatures(previous: Set[str], current: Set[str]) -> SignatureDiff:
    return SignatureDiff(added=sorted(current - previous), removed=sorted(previous - current))


def handler_class_name(settings: FlowUISettings, scene_name: str) -> str:
    return f"{settings.handlers.class_prefix}{sanitize_identifier(scene_name)}UIHandler"


def handler_paths(settings: FlowUISettings, scene_name: str):
    class_name = handler_class_name(settings, scene_name)
    return settings.handlers_dir / f"{class_name}.g.py", settings.handlers_dir / f"{class_name}.py"


def _hint_lines(diff: SignatureDiff, user_file: str) -> List[str]:
    lines = ["# ⚠️ MIGRATION HINTS ⚠️", "# UI elements have changed since last generation:"]
    if diff.added:
        lines.extend(["#", f"# ADDED - Implement these hooks in {user_file}:"])
        lines.extend(f"#   - {name}()" for name in diff.added)
    if diff.removed:
        lines.extend(["#", f"# REMOVED - These hooks are no longer called (safe to delete from {user_file}):"])
        lines.extend(f"#   - {name}()" for name in diff.removed)
    lines.append(RULE)
    return lines


def generate_machine_unit(
    scene_name: str,
    class_name: str,
    library_relative: str,
    signatures: List[HandlerSignature],
    diff: Optional[SignatureDiff] = None,
    stamp: bool = False,
) -> str:
    """Render the always-regenerated handler base class."""
    module = sanitize_identifier(scene_name)
    user_file = f"{class_name}.py"
    added = set(diff.added) if diff else set()

    lines = [RULE, "# AUTO-GENERATED CODE - DO NOT MODIFY", f"# Scene: {module}"]
    if stamp:
        lines.append(f"# Generated on: {datetime.now().isoformat(timespec='seconds')}")
    lines.extend([
        "#",
        "# This file is regenerated whenever the handlers are updated.",
        f"# All custom code belongs in {user_file}",
        RULE,
    ])
    if diff is not None and diff.has_changes:
        lines.extend(_hint_lines(diff, user_file))
    lines.extend([
        f'"""Generated listener wiring for {scene_name}."""',
        "",
        "from flowui.core.runtime import load_generated_unit",
        "",
        f"{module} = load_generated_unit(__file__, {library_relative!r})",
        "",
        "",
        f"class {class_name}Base:",
        f'    """Handles UI interactions for {scene_name}.',
        "",
        f"    Subclass this in {user_file} and override the on_* hooks.",
        '    """',
        "",
        "    def __init__(self, registry):",
        "        self.registry = registry",
        "        self.is_initialized = False",
        "        self._listeners_setup = False",
        "",
        "    # region Initialization",
        "",
        "    def initialize(self):",
        "        if self.is_initialized:",
        "            return",
        f"        {module}.UI.initialize(self.registry)",
        "        self.initialize_ui()",
        "        self.setup_listeners()",
        "        self.is_initialized = True",
        '        print(f"[{type(self).__name__}] Initialized")',
        "",
        "    def cleanup(self):",
        "        if not self.is_initialized:",
        "            return",
        "        self.cleanup_listeners()",
        "        self.is_initialized = False",
        '        print(f"[{type(self).__name__}] Cleaned up")',
        "",
        "    def initialize_ui(self):",
        '        """Set initial UI state (show/hide panels, set text, ...)."""',
        "",
        "    # endregion",
        "",
        "    # region Listener setup",
        "",
        "    def setup_listeners(self):",
        "        if self._listeners_setup:",
        "            return",
    ])
    lines.extend(f"        self.{method}()" for method in SETUP_METHODS.values())
    lines.extend(["        self._listeners_setup = True", ""])

    for capability, method in SETUP_METHODS.items():
        wired = [s for s in signatures if s.capability == capability]
        lines.append(f"    def {method}(self):")
        if not wired:
            lines.append("        pass")
        for signature in wired:
            lines.append(f"        {module}.{signature.accessor}.{signature.spec.event}.add_listener(self.{signature.name})")
        lines.append("")

    lines.extend([
        "    def cleanup_listeners(self):",
        "        if not self._listeners_setup:",
        "            return",
    ])
    for signature in signatures:
        lines.append(f"        {module}.{signature.accessor}.{signature.spec.event}.remove_listener(self.{signature.name})")
    lines.extend([
        "        self.cleanup_custom_listeners()",
        "        self._listeners_setup = False",
        "",
        "    def cleanup_custom_listeners(self):",
        '        """Remove listeners added by hand in initialize_ui()."""',
        "",
        "    # endregion",
        "",
        "    # region Hooks",
        "",
    ])
    for signature in signatures:
        if signature.name in added:
            lines.append(f"    # ✨ NEW - Implement this in {user_file}")
        lines.extend([f"    def {signature.name}({signature.parameters}):", "        pass", ""])
    lines.append("    # endregion")
    return "\n".join(lines) + "\n"


def _hook_body(signature: HandlerSignature) -> List[str]:
    spec = signature.spec
    if spec.parameter:
        return [f'        print(f"{signature.element_name} {spec.verb} {{{spec.parameter}}}")']
    return [f'        print("{signature.element_name} {spec.verb}")']


def generate_user_unit(
    scene_name: str,
    class_name: str,
    signatures: List[HandlerSignature],
    example_panel: Optional[str] = None,
) -> str:
    """Render the hand-edited subclass with one stub per hook."""
    module = sanitize_identifier(scene_name)
    example = example_panel or "MainMenu"
    lines = [
        RULE,
        "# USER CODE FILE",
        f"# Handler for: {module}",
        "#",
        "# This file is for your custom UI logic and event implementations.",
        "# It is never overwritten by the code generator.",
        RULE,
        "from flowui.core.runtime import load_generated_unit",
        "",
        f"_generated = load_generated_unit(__file__, {class_name + '.g.py'!r})",
        f"{module} = _generated.{module}",
        "",
        "",
        f"class {class_name}(_generated.{class_name}Base):",
        "",
        "    def initialize_ui(self):",
        "        # Set initial UI states here",
        f"        # Example: {module}.UI.{example}.show()",
        "        pass",
        "",
    ]
    for signature in signatures:
        lines.append(f"    def {signature.name}({signature.parameters}):")
        lines.extend(_hook_body(signature))
        lines.append("")
    lines.extend([
        "    def cleanup_custom_listeners(self):",
        "        pass",
    ])
    return "\n".join(lines) + "\n"


def _require_library(registry: ReferenceRegistry, settings: FlowUISettings, reporter: Reporter) -> str:
    scene_name = registry.scene_name
    if not scene_name or not is_library_generated(settings, scene_name):
        reporter.error(
            IssueKind.PRECONDITION,
            "The UI library has not been generated yet, generate it before the handlers",
            scene_name,
        )
        raise PreconditionError(f"UI library for scene '{scene_name}' has not been generated")
    return scene_name


def _library_relative(settings: FlowUISettings, scene_name: str, from_dir: Path) -> str:
    return Path(os.path.relpath(library_path(settings, scene_name), from_dir)).as_posix()


def generate_handlers(
    registry: ReferenceRegistry,
    settings: FlowUISettings,
    reporter: Optional[Reporter] = None,
) -> HandlerResult:
    """Regenerate the machine unit and create the user unit if it is missing.

    Raises:
        PreconditionError: the scene's UI library has not been generated yet.
    """
    reporter = ensure_reporter(reporter)
    scene_name = _require_library(registry, settings, reporter)

    print(f"🔧 Generating UI handlers for {scene_name}...")
    class_name = handler_class_name(settings, scene_name)
    machine_path, user_path = handler_paths(settings, scene_name)

    groups = build_panel_groups(registry, reporter)
    signatures = collect_handler_signatures(groups, reporter)
    previous = read_previous_signatures(machine_path)
    diff = diff_signatures(previous, {s.name for s in signatures}) if previous is not None else SignatureDiff()

    library_relative = _library_relative(settings, scene_name, settings.handlers_dir)
    machine_text = generate_machine_unit(
        scene_name, class_name, library_relative, signatures, diff, settings.stamp_generated_files
    )
    machine_path.parent.mkdir(parents=True, exist_ok=True)
    with open(machine_path, "w", encoding="utf-8") as f:
        f.write(machine_text)
    print(f"✅ Generated {machine_path}")

    if diff.has_changes:
        print(f"⚠️  {len(diff.added)} hooks added, {len(diff.removed)} removed, see migration hints")

    user_created = False
    if user_path.exists():
        print(f"⏭️  User file already exists, skipping: {user_path}")
    else:
        example = next((group.class_name for group in groups if group.panel is not None), None)
        with open(user_path, "w", encoding="utf-8") as f:
            f.write(generate_user_unit(scene_name, class_name, signatures, example))
        print(f"✅ Generated {user_path}")
        user_created = True

    return HandlerResult(machine_path=machine_path, user_path=user_path, user_created=user_created, diff=diff)


# ----------------------------------------------------------------------
# Panel handlers: one standalone class per panel group
# ----------------------------------------------------------------------


class PanelHandlerResult(BaseModel):
    written: List[Path] = Field(default_factory=list)
    skipped: List[Path] = Field(default_factory=list)


def panel_handler_class_name(settings: FlowUISettings, group: PanelGroup) -> str:
    return f"{settings.panel_handlers.class_prefix}{group.class_name}PanelHandler"


def panel_handler_path(settings: FlowUISettings, group: PanelGroup) -> Path:
    return settings.panel_handlers_dir / f"{panel_handler_class_name(settings, group)}.py"


def generate_panel_handler(
    scene_name: str,
    class_name: str,
    group: PanelGroup,
    library_relative: str,
    signatures: List[HandlerSignature],
    stamp: bool = False,
) -> str:
    """Render the handler class for one panel: its listeners, hooks and show/hide/toggle."""
    if group.panel is None:
        raise ValueError(f"Group '{group.key}' has no panel reference")
    module = sanitize_identifier(scene_name)
    panel = group.panel
    ui = f"{module}.UI.{group.class_name}"
    missing = f"[{class_name}] Panel '{panel.name}' is not registered"

    lines = [RULE, "# Generated by FlowUI", f"# Scene: {module}", f"# Panel: {panel.name}"]
    if stamp:
        lines.append(f"# Generated on: {datetime.now().isoformat(timespec='seconds')}")
    lines.extend([
        "#",
        "# You can modify this file. It is only rewritten when you regenerate",
        "# the handler for this panel and choose to overwrite it.",
        RULE,
        f'"""Handles UI interactions for the {panel.name} panel of {scene_name}."""',
        "",
        "from flowui.core.runtime import load_generated_unit",
        "",
        f"{module} = load_generated_unit(__file__, {library_relative!r})",
        "",
        f"PANEL_PATH = {panel.canonical_path!r}",
        "",
        "",
        f"class {class_name}:",
        f'    """Listeners, hooks and visibility of {panel.name}"""',
        "",
        "    def __init__(self, registry):",
        "        self.registry = registry",
        "        self.is_initialized = False",
        "        self._listeners_setup = False",
        "",
        "    @property",
        "    def is_panel_active(self) -> bool:",
        f"        return {ui}.is_visible",
        "",
        "    # region Initialization",
        "",
        "    def initialize(self):",
        "        if self.is_initialized:",
        "            return",
        "        if PANEL_PATH not in self.registry:",
        f"            print({missing!r})",
        "            return",
        f"        {module}.UI.initialize(self.registry)",
        "        self.initialize_ui()",
        "        self.setup_listeners()",
        "        self.is_initialized = True",
        f'        print("[{class_name}] Initialized")',
        "",
        "    def initialize_ui(self):",
        '        """Set initial UI states here."""',
        "",
        "    def cleanup(self):",
        "        if not self.is_initialized:",
        "            return",
        "        self.cleanup_listeners()",
        "        self.is_initialized = False",
        "",
        "    # endregion",
        "",
        "    # region Listener setup",
        "",
    ])
    if not signatures:
        lines.append("    # No event-firing elements are registered under this panel")
    lines.extend([
        "    def setup_listeners(self):",
        "        if self._listeners_setup:",
        "            return",
    ])
    present = [
        (capability, method)
        for capability, method in SETUP_METHODS.items()
        if any(s.capability == capability for s in signatures)
    ]
    lines.extend(f"        self.{method}()" for _, method in present)
    lines.extend(["        self._listeners_setup = True", ""])

    for capability, method in present:
        lines.append(f"    def {method}(self):")
        for signature in signatures:
            if signature.capability == capability:
                lines.append(
                    f"        {module}.{signature.accessor}.{signature.spec.event}.add_listener(self.{signature.name})"
                )
        lines.append("")

    lines.extend([
        "    def cleanup_listeners(self):",
        "        if not self._listeners_setup:",
        "            return",
    ])
    for signature in signatures:
        lines.append(f"        {module}.{signature.accessor}.{signature.spec.event}.remove_listener(self.{signature.name})")
    lines.extend([
        "        self._listeners_setup = False",
        "",
        "    # endregion",
        "",
    ])

    if signatures:
        lines.extend(["    # region Hooks", ""])
        for signature in signatures:
            lines.append(f"    def {signature.name}({signature.parameters}):")
            lines.extend(_hook_body(signature))
            lines.append("")
        lines.extend(["    # endregion", ""])

    lines.extend([
        "    # region Panel management",
        "",
        "    def show_panel(self, hide_others: bool = True):",
        f"        {ui}.show(hide_others)",
        "",
        "    def hide_panel(self):",
        f"        {ui}.hide()",
        "",
        "    def toggle_panel(self):",
        f"        {ui}.toggle()",
        "",
        "    # endregion",
    ])
    return "\n".join(lines) + "\n"


def generate_panel_handlers(
    registry: ReferenceRegistry,
    settings: FlowUISettings,
    decide: Optional[Decider] = None,
    reporter: Optional[Reporter] = None,
    panels: Optional[List[str]] = None,
) -> PanelHandlerResult:
    """Write one handler per panel group, optionally only for the named panels.

    Panels are selected by group key (MainMenu) or panel name (Main_Menu_Panel).
    Existing files are skipped unless a decider is given, in which case it
    chooses between backup, overwrite and cancel as for the library.

    Raises:
        PreconditionError: the scene's UI library has not been generated yet.
    """
    reporter = ensure_reporter(reporter)
    scene_name = _require_library(registry, settings, reporter)

    print(f"🔧 Generating panel handlers for {scene_name}...")
    groups = [group for group in build_panel_groups(registry, reporter) if group.panel is not None]
    if panels is not None:
        wanted = set(panels)
        for name in sorted(wanted - {g.key for g in groups} - {g.panel.name for g in groups}):
            reporter.warn(IssueKind.LOOKUP_MISS, f"No panel named '{name}'", name)
        groups = [g for g in groups if g.key in wanted or g.panel.name in wanted]

    library_relative = _library_relative(settings, scene_name, settings.panel_handlers_dir)
    result = PanelHandlerResult()
    for group in groups:
        path = panel_handler_path(settings, group)
        if path.exists() and decide is None:
            print(f"⏭️  Panel handler already exists, skipping: {path}")
            result.skipped.append(path)
            continue
        content = generate_panel_handler(
            scene_name,
            panel_handler_class_name(settings, group),
            group,
            library_relative,
            collect_handler_signatures([group], reporter),
            settings.stamp_generated_files,
        )
        written = write_unit(path, content, decide)
        (result.written if written is not None else result.skipped).append(path)

    if not groups:
        print("⚠️  No panels to generate handlers for")
    return result
