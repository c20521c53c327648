"""Prompt catalog for agents, synthesis, drafting and image calls.

Prompts live in `nanobook/prompts/prompts.json` under dotted keys such as
`agents.detective.task`. Long prompts are stored as lists of lines. Templates
use `string.Template` placeholders, so a literal dollar sign is written `$$`.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

from nanobook.errors import PromptNotFoundError

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"
_catalog_cache: dict[str, Any] | None = None
_catalog_mtime_ns: int | None = None


def _load_catalog() -> dict[str, Any]:
    global _catalog_cache, _catalog_mtime_ns
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _catalog_cache is not None and _catalog_mtime_ns == mtime_ns:
        return _catalog_cache

    payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Prompt catalog must be a JSON object.")
    _catalog_cache = payload
    _catalog_mtime_ns = mtime_ns
    return payload


def _lookup(key: str) -> Any:
    node: Any = _load_catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise PromptNotFoundError(key)
        node = node[part]
    return node


def get_template(key: str) -> Template:
    node = _lookup(key)
    if isinstance(node, list) and all(isinstance(line, str) for line in node):
        node = "\n".join(node)
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string or list of lines: {key}")
    return Template(node)


def render_prompt(key: str, **values: Any) -> str:
    """Render a catalog prompt. Every placeholder must be supplied."""
    template = get_template(key)
    try:
        return template.substitute(**values)
    except KeyError as exc:
        raise PromptNotFoundError(key, missing=str(exc.args[0])) from exc


def clear_prompt_cache() -> None:
    global _catalog_cache, _catalog_mtime_ns
    _catalog_cache = None
    _catalog_mtime_ns = None
