# Config Package
"""
Configuration for the triage engine.

- default_rules.yaml: default trigger table definition
- settings.py: environment-driven engine settings
- loader.py: YAML rule file loading
"""

from pathlib import Path

CONFIG_DIR = Path(__file__).parent

__all__ = ["CONFIG_DIR"]
