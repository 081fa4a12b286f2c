# ABOUTME: Static registries of known servers, bundles and IDE targets
# ABOUTME: Catalog instances are injected into the core so tests can substitute their own
import os
import sys
import warnings
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from mcpp.models import Bundle, IDETarget, ServerDescriptor, unique

BUILTIN_SERVERS: tuple[ServerDescriptor, ...] = (
    ServerDescriptor(
        id="filesystem",
        package="@modelcontextprotocol/server-filesystem",
        version="2025.8.21",
        description="File system operations and management",
        category="core",
    ),
    ServerDescriptor(
        id="sequential-thinking",
        package="@modelcontextprotocol/server-sequential-thinking",
        version="2025.7.1",
        description="Advanced reasoning and problem-solving capabilities",
        category="core",
    ),
    ServerDescriptor(
        id="github",
        package="@modelcontextprotocol/server-github",
        version="2025.4.8",
        description="GitHub integration for repositories and issues",
        category="integration",
        required_env=("GITHUB_TOKEN",),
    ),
    ServerDescriptor(
        id="duckduckgo",
        package="duckduckgo-mcp-server",
        version="0.1.2",
        description="Web search capabilities via DuckDuckGo",
        category="integration",
    ),
    ServerDescriptor(
        id="context7",
        package="@upstash/context7-mcp",
        version="latest",
        description="Up-to-date code documentation and examples for LLMs",
        category="integration",
    ),
    ServerDescriptor(
        id="playwright",
        package="@playwright/mcp",
        version="0.0.36",
        description="Browser automation and web testing",
        category="specialized",
    ),
    ServerDescriptor(
        id="n8n",
        package="n8n-mcp",
        version="2.10.6",
        description="Workflow automation platform",
        category="specialized",
        required_env=("N8N_API_KEY", "N8N_BASE_URL"),
    ),
    ServerDescriptor(
        id="webflow",
        package="webflow-mcp-server",
        version="0.7.0",
        description="Webflow CMS and site management",
        category="specialized",
        required_env=("WEBFLOW_API_TOKEN",),
    ),
    ServerDescriptor(
        id="crawl4ai-rag",
        package="mcp-crawl4ai-rag",
        version="latest",
        description="Web crawling and RAG with vector database storage",
        category="specialized",
        required_env=("OPENAI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"),
        optional_env=("NEO4J_URI", "NEO4J_USERNAME", "NEO4J_PASSWORD"),
    ),
)

BUILTIN_BUNDLES: tuple[Bundle, ...] = (
    Bundle(
        id="essential",
        description="Core servers for basic functionality",
        servers=("filesystem", "sequential-thinking"),
        category="core",
    ),
    Bundle(
        id="web-dev",
        description="Web development with GitHub, search, documentation, and browser automation",
        servers=("filesystem", "sequential-thinking", "github", "duckduckgo", "context7", "playwright"),
        category="development",
    ),
    Bundle(
        id="automation",
        description="Workflow automation and integration tools",
        servers=("filesystem", "sequential-thinking", "n8n", "webflow"),
        category="automation",
    ),
    Bundle(
        id="research",
        description="Research and documentation tools",
        servers=("filesystem", "sequential-thinking", "duckduckgo", "context7", "github"),
        category="research",
    ),
    Bundle(
        id="ai-rag",
        description="AI development with documentation and RAG capabilities",
        servers=("filesystem", "sequential-thinking", "context7", "crawl4ai-rag", "github"),
        category="ai",
    ),
    Bundle(
        id="full",
        description="All available MCP servers",
        servers=tuple(server.id for server in BUILTIN_SERVERS),
        category="comprehensive",
    ),
)


def _app_support_dir(home: Path) -> Path:
    """Get the per-user application data directory for the current OS.

    ABOUTME: macOS Library/Application Support, Windows APPDATA, else ~/.config
    """
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", home / "AppData" / "Roaming"))
    else:  # Linux and others
        return home / ".config"


def builtin_ide_targets(home: Path | None = None) -> tuple[IDETarget, ...]:
    """Build the known IDE targets rooted at the given home directory.

    Args:
        home: Home directory override (defaults to Path.home())

    Returns:
        Tuple of IDETarget in display order
    """
    home = home if home is not None else Path.home()
    return (
        IDETarget(
            id="cursor",
            config_path=home / ".cursor" / "mcp.json",
            config_format="json",
            supports_project_config=True,
            project_filename="cursor.json",
        ),
        IDETarget(
            id="windsurf",
            config_path=home / ".codeium" / "windsurf" / "mcp_config.json",
            config_format="json",
            supports_project_config=True,
            project_filename="windsurf.json",
        ),
        IDETarget(
            id="claude-desktop",
            config_path=_app_support_dir(home) / "Claude" / "claude_desktop_config.json",
            config_format="json",
            supports_project_config=False,
        ),
        IDETarget(
            id="claude-code",
            config_path=None,
            config_format="script",
            supports_project_config=True,
            project_filename="claude-code-setup.sh",
        ),
        IDETarget(
            id="warp",
            config_path=home / ".warp" / "mcp_config.json",
            config_format="json",
            supports_project_config=True,
            project_filename="warp.json",
        ),
        IDETarget(
            id="codex",
            config_path=home / ".codex" / "config.toml",
            config_format="toml",
            supports_project_config=False,
        ),
    )


@dataclass(frozen=True)
class Catalog:
    """Read-only lookup tables for servers, bundles and IDE targets.

    ABOUTME: Mappings are wrapped in MappingProxyType to stay read-only
    ABOUTME: Insertion order of each mapping is the display order
    """
    servers: Mapping[str, ServerDescriptor]
    bundles: Mapping[str, Bundle]
    ides: Mapping[str, IDETarget]

    @classmethod
    def build(
        cls,
        servers: Iterable[ServerDescriptor],
        bundles: Iterable[Bundle],
        ides: Iterable[IDETarget],
    ) -> "Catalog":
        return cls(
            servers=MappingProxyType({s.id: s for s in servers}),
            bundles=MappingProxyType({b.id: b for b in bundles}),
            ides=MappingProxyType({i.id: i for i in ides}),
        )

    def validate_servers(self, server_ids: Iterable[str]) -> list[str]:
        """Keep known server ids, dropping unknown ones with a warning.

        ABOUTME: Duplicates collapse, first-seen order is kept
        ABOUTME: Never raises for unknown ids

        Examples:
            >>> default_catalog().validate_servers(["filesystem", "bogus"])
            ['filesystem']  # with UserWarning naming 'bogus'
        """
        ids = unique(list(server_ids))
        unknown = [s for s in ids if s not in self.servers]
        if unknown:
            warnings.warn(
                f"Unknown servers ignored: {', '.join(unknown)}",
                UserWarning,
                stacklevel=2,
            )
        return [s for s in ids if s in self.servers]

    def validate_ides(self, ide_ids: Iterable[str]) -> list[str]:
        """Keep known IDE ids, dropping unknown ones with a warning."""
        ids = unique(list(ide_ids))
        unknown = [i for i in ids if i not in self.ides]
        if unknown:
            warnings.warn(
                f"Unknown IDEs ignored: {', '.join(unknown)}",
                UserWarning,
                stacklevel=2,
            )
        return [i for i in ids if i in self.ides]

    def env_keys(self, server_ids: Iterable[str]) -> tuple[list[str], list[str]]:
        """Union of required and optional env keys for the given servers.

        ABOUTME: Unknown ids contribute nothing
        ABOUTME: A key required by any server is not repeated as optional

        Returns:
            Tuple of (required keys, optional keys), each in first-seen order
        """
        required: list[str] = []
        optional: list[str] = []
        for server_id in server_ids:
            server = self.servers.get(server_id)
            if server is None:
                continue
            required.extend(server.required_env)
            optional.extend(server.optional_env)
        required = unique(required)
        optional = [k for k in unique(optional) if k not in required]
        return required, optional

    def servers_requiring_env(self, server_ids: Iterable[str]) -> list[str]:
        return [
            s for s in server_ids
            if s in self.servers and self.servers[s].required_env
        ]


def default_catalog(home: Path | None = None) -> Catalog:
    """Catalog of built-in servers, bundles and IDE targets."""
    return Catalog.build(BUILTIN_SERVERS, BUILTIN_BUNDLES, builtin_ide_targets(home))
