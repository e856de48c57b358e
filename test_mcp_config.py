"""Tests for MCP server config loading and result flattening."""

import json
import os
from types import SimpleNamespace

from tools.mcp_config import (
    build_providers, load_config_file, load_server_configs, parse_config, strip_jsonc, write_example_config,
)
from tools.mcp_provider import MCPStdioProvider, _to_tool_result


def _write(directory, name, text):
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, name)
    with open(path, "w") as f:
        f.write(text)
    return path


def test_strip_jsonc_keeps_strings():
    text = """{
      // docs server
      "url": "https://example.com/a//b", /* inline */
      "args": ["x", "y",],
    }"""
    data = json.loads(strip_jsonc(text))
    assert data == {"url": "https://example.com/a//b", "args": ["x", "y"]}


def test_both_layouts_are_accepted():
    servers = parse_config({
        "servers": [{"name": "docs", "command": "npx", "args": ["-y", "docs-server"]}],
        "mcpServers": {"tracker": {"command": "tracker-mcp", "env": {"TOKEN": 1}, "enabled": False}},
    })
    assert [(s.name, s.command) for s in servers] == [("docs", "npx"), ("tracker", "tracker-mcp")]
    assert servers[0].args == ["-y", "docs-server"]
    assert servers[0].enabled is True
    assert servers[1].env == {"TOKEN": "1"}
    assert servers[1].enabled is False


def test_invalid_entries_are_skipped():
    servers = parse_config({"servers": [
        "not-an-object",
        {"command": "no-name"},
        {"name": "nocmd"},
        {"name": "badargs", "command": "x", "args": "oops"},
        {"name": "ok", "command": "x"},
    ]})
    assert [s.name for s in servers] == ["ok"]
    assert parse_config([]) == []


def test_unreadable_file_yields_nothing(tmp_path):
    path = _write(str(tmp_path), "mcp-config.json", "{broken")
    assert load_config_file(path) == []


def test_project_overrides_global(tmp_path):
    global_dir = str(tmp_path / "global")
    project = str(tmp_path / "project")
    _write(global_dir, "mcp-config.json", json.dumps({"servers": [
        {"name": "docs", "command": "global-docs"},
        {"name": "tracker", "command": "tracker-mcp"},
    ]}))
    _write(os.path.join(project, ".bedrock-planner"), "mcp-config.jsonc",
           '{"mcpServers": {"docs": {"command": "project-docs"}}} // local')

    servers = {s.name: s.command for s in load_server_configs(project, global_dir=global_dir)}

    assert servers == {"docs": "project-docs", "tracker": "tracker-mcp"}


def test_build_providers_skips_disabled(tmp_path):
    project = str(tmp_path)
    _write(os.path.join(project, ".bedrock-planner"), "mcp-config.json", json.dumps({"servers": [
        {"name": "docs", "command": "docs-mcp", "env": {"DOCS_ROOT": "/srv"}},
        {"name": "off", "command": "x", "enabled": False},
    ]}))

    providers = build_providers(project, global_dir=str(tmp_path / "none"))

    assert len(providers) == 1
    provider = providers[0]
    assert isinstance(provider, MCPStdioProvider)
    assert provider.provider_id == "docs"
    assert provider.env["DOCS_ROOT"] == "/srv"
    assert provider.cwd == os.path.abspath(project)
    assert not provider.connected


def test_example_config_is_parseable_and_disabled(tmp_path):
    path = write_example_config(str(tmp_path))
    servers = load_config_file(path)

    assert [s.name for s in servers] == ["filesystem"]
    assert servers[0].enabled is False
    assert write_example_config(str(tmp_path)) == path
    assert build_providers(str(tmp_path), global_dir=str(tmp_path / "none")) == []


def test_tool_result_flattening():
    ok = SimpleNamespace(content=[SimpleNamespace(type="text", text="line one"),
                                  SimpleNamespace(type="image", data="...")], isError=False)
    result = _to_tool_result(ok)
    assert result.output == "line one\n[image content omitted]"

    structured = SimpleNamespace(content=[], structuredContent={"count": 2}, isError=False)
    assert json.loads(_to_tool_result(structured).output) == {"count": 2}

    failed = SimpleNamespace(content=[SimpleNamespace(type="text", text="not found")], isError=True)
    assert _to_tool_result(failed).error_text == "not found"
