#!/usr/bin/env python3
"""
FlowUI command line

    flowui register              add every classifiable scene node to the registry
    flowui standardize [--force] rename scene nodes to canonical names
    flowui check-names           report default/engine generated names
    flowui library               generate the UI accessor library
    flowui handlers              regenerate handler units (library must exist)
    flowui panel-handlers        write one handler class per panel (library must exist)
    flowui search QUERY          show matching nodes and what would auto-expand
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from flowui.config import FlowUISettings, load_settings
from flowui.core.naming import NameStandardizer, analyze_naming_issues
from flowui.core.registry import ReferenceRegistry, load_registry, save_registry
from flowui.core.scene import Scene, load_scene, save_scene
from flowui.core.search import DebouncedSearch, SearchIndex
from flowui.dev.file_output import WriteDecision, always
from flowui.dev.handler_writer import generate_handlers, generate_panel_handlers
from flowui.dev.library_writer import write_library
from flowui.diagnostics import FlowUIError, Reporter
from flowui.models.capability import Capability, classify_node

CONFLICT_CHOICES = {
    "backup": WriteDecision.BACKUP_AND_OVERWRITE,
    "overwrite": WriteDecision.OVERWRITE,
    "cancel": WriteDecision.CANCEL,
}


def ask_decision(path) -> WriteDecision:
    answer = input(f"{path} already exists. [b]ackup and overwrite / [o]verwrite / [c]ancel? ").strip().lower()
    if answer.startswith("b"):
        return WriteDecision.BACKUP_AND_OVERWRITE
    if answer.startswith("o"):
        return WriteDecision.OVERWRITE
    return WriteDecision.CANCEL


def _load_bound_registry(settings: FlowUISettings, scene: Scene, reporter: Reporter) -> ReferenceRegistry:
    registry = load_registry(settings.registry_path, reporter)
    registry.scene_name = registry.scene_name or scene.name
    registry.bind_scene(scene)
    return registry


def _standardizer(settings: FlowUISettings, reporter: Reporter) -> NameStandardizer:
    return NameStandardizer(
        standardize_children=settings.naming.standardize_child_elements,
        respect_existing=settings.naming.respect_existing_conventions,
        reporter=reporter,
    )


def cmd_register(settings: FlowUISettings, args, reporter: Reporter) -> int:
    print("🔍 Registering UI elements...")
    scene = load_scene(settings.scene_path, reporter)
    registry = _load_bound_registry(settings, scene, reporter)
    if settings.naming.auto_standardize_on_add:
        registry.standardizer = _standardizer(settings, reporter)

    before = len(registry)
    for node in scene.snapshot():
        if classify_node(node) == Capability.UNKNOWN or registry.contains(instance_key=node.instance_key):
            continue
        registry.add(node)
    # Renaming a parent moves references registered in earlier runs
    registry.refresh_paths()

    save_registry(registry, settings.registry_path)
    print(f"✅ Registered {len(registry) - before} new elements ({len(registry)} total)")
    if registry.standardizer is not None and registry.standardizer.renamed_count:
        save_scene(scene, settings.scene_path)
        print(f"✏️  Renamed {registry.standardizer.renamed_count} nodes, scene file updated")
    return 0


def cmd_standardize(settings: FlowUISettings, args, reporter: Reporter) -> int:
    print("✏️  Standardizing UI element names...")
    scene = load_scene(settings.scene_path, reporter)
    registry = _load_bound_registry(settings, scene, reporter) if settings.registry_path.exists() else None

    renamed = _standardizer(settings, reporter).standardize_scene(scene, force=args.force)
    save_scene(scene, settings.scene_path)
    if registry is not None:
        moved = registry.refresh_paths()
        save_registry(registry, settings.registry_path)
        print(f"📝 Updated {moved} registry paths")
    print(f"✅ Renamed {renamed} nodes")
    return 0


def cmd_check_names(settings: FlowUISettings, args, reporter: Reporter) -> int:
    scene = load_scene(settings.scene_path, reporter)
    summary = analyze_naming_issues(scene)
    print(f"📊 {summary.total_elements} UI elements, {summary.total_bad_elements} with default names")
    for path in summary.bad_elements:
        print(f"   - {path}")
    return 1 if summary.bad_elements else 0


def cmd_library(settings: FlowUISettings, args, reporter: Reporter) -> int:
    scene = load_scene(settings.scene_path, reporter)
    registry = _load_bound_registry(settings, scene, reporter)
    decide = ask_decision if args.on_conflict == "ask" else always(CONFLICT_CHOICES[args.on_conflict])
    written = write_library(registry, settings, decide, reporter)
    return 0 if written is not None else 1


def cmd_handlers(settings: FlowUISettings, args, reporter: Reporter) -> int:
    scene = load_scene(settings.scene_path, reporter)
    registry = _load_bound_registry(settings, scene, reporter)
    result = generate_handlers(registry, settings, reporter)
    for name in result.diff.added:
        print(f"   + {name}")
    for name in result.diff.removed:
        print(f"   - {name}")
    return 0


def cmd_panel_handlers(settings: FlowUISettings, args, reporter: Reporter) -> int:
    scene = load_scene(settings.scene_path, reporter)
    registry = _load_bound_registry(settings, scene, reporter)
    if args.on_conflict == "skip":
        decide = None
    elif args.on_conflict == "ask":
        decide = ask_decision
    else:
        decide = always(CONFLICT_CHOICES[args.on_conflict])
    result = generate_panel_handlers(registry, settings, decide, reporter, args.panel or None)
    print(f"📊 {len(result.written)} panel handlers written, {len(result.skipped)} skipped")
    return 0


async def _debounced_search(index: SearchIndex, query: str, delay: float):
    search = DebouncedSearch(index, delay)
    search.submit(query)
    await search.wait()


def cmd_search(settings: FlowUISettings, args, reporter: Reporter) -> int:
    scene = load_scene(settings.scene_path, reporter)
    index = SearchIndex(scene)
    asyncio.run(_debounced_search(index, args.query, settings.search.debounce_seconds))

    matches = 0
    for node in index.visible_nodes():
        marker = "🔍" if index.is_match(node) else "  "
        expand = " ▾" if index.should_auto_expand(node) else ""
        print(f"{'  ' * node.depth}{marker} {node.name}{expand}")
        if index.is_match(node):
            matches += 1
    print(f"📊 {matches} matches for '{args.query}'")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowui", description="UI reference registry and code generator")
    parser.add_argument("--config", help="path to flowui.yaml (default: ./flowui.yaml)")
    parser.add_argument("--quiet", action="store_true", help="do not echo warnings as they happen")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("register", help="add scene nodes to the registry").set_defaults(handler=cmd_register)

    standardize = commands.add_parser("standardize", help="rename scene nodes to canonical names")
    standardize.add_argument("--force", action="store_true", help="also rename names that already look standardized")
    standardize.set_defaults(handler=cmd_standardize)

    commands.add_parser("check-names", help="report default names").set_defaults(handler=cmd_check_names)

    library = commands.add_parser("library", help="generate the UI library")
    library.add_argument("--on-conflict", choices=[*CONFLICT_CHOICES, "ask"], default="ask")
    library.set_defaults(handler=cmd_library)

    commands.add_parser("handlers", help="generate the UI handler units").set_defaults(handler=cmd_handlers)

    panel_handlers = commands.add_parser("panel-handlers", help="generate one handler class per panel")
    panel_handlers.add_argument("--panel", action="append", help="panel key or name, repeatable (default: every panel)")
    panel_handlers.add_argument("--on-conflict", choices=[*CONFLICT_CHOICES, "ask", "skip"], default="skip")
    panel_handlers.set_defaults(handler=cmd_panel_handlers)

    search = commands.add_parser("search", help="search the scene hierarchy")
    search.add_argument("query")
    search.set_defaults(handler=cmd_search)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    reporter = Reporter(echo=not args.quiet)
    try:
        settings = load_settings(args.config)
        return args.handler(settings, args, reporter)
    except FlowUIError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        if reporter.diagnostics:
            counts = ", ".join(f"{kind}: {count}" for kind, count in sorted(reporter.summary().items()))
            print(f"📋 Diagnostics - {counts}")


if __name__ == "__main__":
    sys.exit(main())
