from __future__ import annotations

import json
import os

import pytest

from app.services.prompt_store import PromptStore, prompts


def test_render_substitutes_template_values():
    prompt = prompts.render(
        "research_agent.research",
        query="ruby conferences",
        topic="SF Ruby",
        depth="deep",
        context="",
    )
    assert "Query: ruby conferences" in prompt
    assert "Topic: SF Ruby" in prompt
    assert "Depth: deep" in prompt


def test_text_joins_line_lists():
    prompt = prompts.text("research_agent.instructions")
    assert "\n" in prompt
    assert "web_search" in prompt
    assert "web_fetch" in prompt


def test_render_raises_for_missing_value():
    with pytest.raises(KeyError, match="Missing template value"):
        prompts.render("research_agent.break_down_task", task="ship it")


def test_render_raises_for_unknown_key():
    with pytest.raises(KeyError):
        prompts.render("missing.prompt.key")


def test_scoped_view_resolves_relative_keys():
    agent_prompts = prompts.scoped("research_agent")

    assert agent_prompts.text("context_header") == prompts.text("research_agent.context_header")
    with pytest.raises(KeyError, match="research_agent.nope"):
        agent_prompts.text("nope")


def test_catalog_is_reloaded_when_file_changes(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text(json.dumps({"greeting": "Hello $name"}), encoding="utf-8")
    store = PromptStore(path)
    assert store.render("greeting", name="Ada") == "Hello Ada"

    path.write_text(json.dumps({"greeting": ["Hi $name", "again"]}), encoding="utf-8")
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    assert store.render("greeting", name="Ada") == "Hi Ada\nagain"


def test_clear_forces_reload(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text(json.dumps({"a": "first"}), encoding="utf-8")
    store = PromptStore(path)
    mtime_ns = path.stat().st_mtime_ns
    assert store.text("a") == "first"

    path.write_text(json.dumps({"a": "second"}), encoding="utf-8")
    os.utime(path, ns=(mtime_ns, mtime_ns))
    assert store.text("a") == "first"

    store.clear()
    assert store.text("a") == "second"


def test_rejects_malformed_catalogs(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text(json.dumps(["not", "an", "object"]), encoding="utf-8")
    with pytest.raises(ValueError):
        PromptStore(path).text("a")

    path.write_text(json.dumps({"a": {"b": 1}}), encoding="utf-8")
    with pytest.raises(TypeError):
        PromptStore(path).text("a.b")
