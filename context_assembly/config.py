"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .token_counter import is_valid_mode
from .types import AssemblyConfig, TemplateConfig

CONFIG_FILENAMES = [
    "context-assembly.yaml",
    "context-assembly.yml",
    "context-assembly.json",
]


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _build_config(raw: dict[str, Any]) -> AssemblyConfig:
    """Build an AssemblyConfig from a raw dict."""
    margins = raw.get("margins", {})
    templates_raw = raw.get("templates", {})
    templates = TemplateConfig(
        long_memory=templates_raw.get("long_memory"),
        lore=templates_raw.get("lore", "{input}"),
    )

    return AssemblyConfig(
        version=str(raw.get("version", "0.1")),
        token_limit=raw.get("token_limit", 4096),
        token_counter=raw.get("token_counter", "estimate"),
        history_margin=margins.get("history", 80),
        history_margin_with_documents=margins.get("history_with_documents", 480),
        document_margin=margins.get("documents", 80),
        lore_token_budget=raw.get("lore_token_budget", 300),
        persona_cache_size=raw.get("persona_cache_size", 32),
        instructions=raw.get("instructions"),
        templates=templates,
    )


def validate_config(config: AssemblyConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    if config.token_limit <= 0:
        errors.append(f"token_limit must be > 0, got {config.token_limit}")

    for name in ("history_margin", "history_margin_with_documents", "document_margin",
                 "lore_token_budget"):
        value = getattr(config, name)
        if value < 0:
            errors.append(f"{name} must be >= 0, got {value}")

    if config.history_margin_with_documents < config.history_margin:
        errors.append(
            f"history_margin_with_documents ({config.history_margin_with_documents}) must be "
            f">= history_margin ({config.history_margin})"
        )

    if config.persona_cache_size < 1:
        errors.append("persona_cache_size must be >= 1")

    mode = config.token_counter
    if not is_valid_mode(mode):
        errors.append(f"Unknown token_counter mode: {mode}")

    if "{input}" not in config.templates.lore:
        errors.append("templates.lore must contain an {input} placeholder")

    if config.templates.long_memory is not None and "{long_history}" not in config.templates.long_memory:
        errors.append("templates.long_memory must contain a {long_history} placeholder")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> AssemblyConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
