"""
Loading MCP server definitions from JSON (or JSONC) config files.

Two locations are read, global first, then project:
    ~/.config/bedrock-planner/mcp-config.json[c]
    <project>/.bedrock-planner/mcp-config.json[c]
A project server with the same name replaces the global one.

Both layouts are accepted:
    {"servers": [{"name": "docs", "command": "npx", "args": [...]}]}
    {"mcpServers": {"docs": {"command": "npx", "args": [...]}}}
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tools.mcp_provider import MCPStdioProvider

logger = logging.getLogger(__name__)

CONFIG_BASENAMES = ("mcp-config.json", "mcp-config.jsonc")
GLOBAL_CONFIG_DIR = os.path.join("~", ".config", "bedrock-planner")

# Strings are matched first so "//" inside a URL survives.
_JSONC_TOKEN_RE = re.compile(r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*.*?\*/)', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")

EXAMPLE_CONFIG = """{
  // MCP servers offered to the planner as tools.
  // Each server is started over stdio when a planning session begins.
  "servers": [
    {
      "name": "filesystem",
      "command": "npx",
      "args": ["-y", "@modelcontextprotocol/server-filesystem", "."],
      "enabled": false
    }
  ]
}
"""


@dataclass
class MCPServerConfig:
    name: str
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    enabled: bool = True


def strip_jsonc(text: str) -> str:
    """Remove // and /* */ comments and trailing commas, leaving strings intact."""
    def _keep_strings(m: "re.Match[str]") -> str:
        return m.group(1) if m.group(1) is not None else ""
    return _TRAILING_COMMA_RE.sub(r"\1", _JSONC_TOKEN_RE.sub(_keep_strings, text))


def _parse_server(name: Any, raw: Any) -> Optional[MCPServerConfig]:
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring MCP server entry that is not an object: {raw!r}")
        return None
    if not isinstance(name, str) or not name.strip():
        logger.warning("Ignoring MCP server entry without a name")
        return None
    command = raw.get("command")
    if not isinstance(command, str) or not command.strip():
        logger.warning(f"Ignoring MCP server '{name}': missing command")
        return None
    args = raw.get("args") or []
    if not isinstance(args, list):
        logger.warning(f"Ignoring MCP server '{name}': args must be a list")
        return None
    env = raw.get("env") or {}
    if not isinstance(env, dict):
        logger.warning(f"Ignoring MCP server '{name}': env must be an object")
        return None
    return MCPServerConfig(
        name=name.strip(),
        command=command.strip(),
        args=[str(a) for a in args],
        env={str(k): str(v) for k, v in env.items()},
        cwd=raw.get("cwd"),
        enabled=raw.get("enabled", True) is not False,
    )


def parse_config(data: Any) -> List[MCPServerConfig]:
    """Parse either config layout into server definitions, skipping invalid entries."""
    if not isinstance(data, dict):
        logger.warning("MCP config root must be an object")
        return []

    servers: List[MCPServerConfig] = []
    if isinstance(data.get("servers"), list):
        for raw in data["servers"]:
            server = _parse_server(raw.get("name") if isinstance(raw, dict) else None, raw)
            if server:
                servers.append(server)
    if isinstance(data.get("mcpServers"), dict):
        for name, raw in data["mcpServers"].items():
            server = _parse_server(name, raw)
            if server:
                servers.append(server)
    return servers


def _find_config_file(directory: str) -> Optional[str]:
    for basename in CONFIG_BASENAMES:
        path = os.path.join(directory, basename)
        if os.path.isfile(path):
            return path
    return None


def load_config_file(path: str) -> List[MCPServerConfig]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        data = json.loads(strip_jsonc(text))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read MCP config {path}: {e}")
        return []
    servers = parse_config(data)
    logger.debug(f"Loaded {len(servers)} MCP server definition(s) from {path}")
    return servers


def config_paths(project_path: str, state_dir_name: str = ".bedrock-planner",
                 global_dir: Optional[str] = None) -> List[str]:
    """Existing config files, global first."""
    directories = [
        os.path.expanduser(global_dir or GLOBAL_CONFIG_DIR),
        os.path.join(os.path.abspath(project_path), state_dir_name),
    ]
    paths = []
    for directory in directories:
        path = _find_config_file(directory)
        if path:
            paths.append(path)
    return paths


def load_server_configs(project_path: str, state_dir_name: str = ".bedrock-planner",
                        global_dir: Optional[str] = None) -> List[MCPServerConfig]:
    """Merge global and project definitions; project entries override by name."""
    merged: Dict[str, MCPServerConfig] = {}
    for path in config_paths(project_path, state_dir_name, global_dir):
        for server in load_config_file(path):
            merged[server.name] = server
    return list(merged.values())


def build_providers(project_path: str, state_dir_name: str = ".bedrock-planner",
                    global_dir: Optional[str] = None) -> List[MCPStdioProvider]:
    """One stdio provider per enabled server definition."""
    providers = []
    for server in load_server_configs(project_path, state_dir_name, global_dir):
        if not server.enabled:
            logger.debug(f"MCP server '{server.name}' is disabled")
            continue
        env = {**os.environ, **server.env} if server.env else None
        providers.append(MCPStdioProvider(
            provider_id=server.name,
            command=server.command,
            args=server.args,
            env=env,
            cwd=server.cwd or os.path.abspath(project_path),
        ))
    return providers


def write_example_config(project_path: str, state_dir_name: str = ".bedrock-planner") -> str:
    """Create a commented example config in the project unless one exists. Returns its path."""
    directory = os.path.join(os.path.abspath(project_path), state_dir_name)
    existing = _find_config_file(directory)
    if existing:
        return existing
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, "mcp-config.jsonc")
    with open(path, "w", encoding="utf-8") as f:
        f.write(EXAMPLE_CONFIG)
    logger.info(f"Wrote example MCP config: {path}")
    return path
