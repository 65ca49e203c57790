from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptStore:
    """Prompt templates read from a JSON catalog.

    Keys are dotted paths into the catalog. A template is either a string or a
    list of lines, and uses ``$name`` placeholders. The file is re-read when
    its mtime changes, so prompts can be edited while the server runs.
    """

    def __init__(self, path: Path = PROMPTS_PATH, namespace: str = ""):
        self.path = Path(path)
        self.namespace = namespace
        self._cache: dict[str, Any] = {"catalog": None, "mtime_ns": None}

    def scoped(self, namespace: str) -> PromptStore:
        """A view rooted at namespace that shares this store's cache."""
        view = PromptStore(self.path, self._qualify(namespace))
        view._cache = self._cache
        return view

    def _qualify(self, key: str) -> str:
        return f"{self.namespace}.{key}" if self.namespace else key

    def _catalog(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._cache["catalog"] is not None and self._cache["mtime_ns"] == mtime_ns:
            return self._cache["catalog"]

        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog must be a JSON object: {self.path}")
        self._cache.update(catalog=payload, mtime_ns=mtime_ns)
        return payload

    def text(self, key: str) -> str:
        full_key = self._qualify(key)
        node: Any = self._catalog()
        for part in full_key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {full_key}")
            node = node[part]
        if isinstance(node, list) and all(isinstance(line, str) for line in node):
            return "\n".join(node)
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string: {full_key}")
        return node

    def render(self, key: str, **values: Any) -> str:
        template = Template(self.text(key))
        try:
            return template.substitute(**values)
        except KeyError as exc:
            missing = str(exc.args[0])
            raise KeyError(
                f"Missing template value '{missing}' for prompt '{self._qualify(key)}'"
            ) from exc

    def clear(self) -> None:
        self._cache.update(catalog=None, mtime_ns=None)


prompts = PromptStore()
