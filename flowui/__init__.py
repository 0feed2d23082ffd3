"""
FlowUI code generation toolkit.

Turns a registry of UI element references into a typed accessor library and
regeneration-safe event handler scaffolding.
"""

__version__ = "0.4.0"
