# ABOUTME: Config Renderer: turns a project selection into per-target launch specs
# ABOUTME: Env blocks are all-or-nothing per server
import warnings

from mcpp.catalog import Catalog
from mcpp.models import (
    IDETarget,
    LaunchSpec,
    ProjectDescriptor,
    RenderedConfig,
    ResolvedEnv,
    ServerDescriptor,
)

# ABOUTME: Every catalog server is launched through npx
LAUNCH_COMMAND = "npx"


def build_launch_spec(server: ServerDescriptor, env: ResolvedEnv) -> LaunchSpec:
    """Build the launch spec for one catalog server.

    ABOUTME: env block attached only when every required key is resolved
    ABOUTME: Optional keys are never attached

    Examples:
        >>> spec = build_launch_spec(github, ResolvedEnv(values={"GITHUB_TOKEN": "t"}))
        >>> spec.to_dict()
        {'command': 'npx', 'args': ['@modelcontextprotocol/server-github@2025.4.8'],
         'env': {'GITHUB_TOKEN': 't'}}
    """
    env_block: dict[str, str] | None = None
    if server.required_env and all(key in env for key in server.required_env):
        env_block = {key: env.values[key] for key in server.required_env}

    return LaunchSpec(
        command=LAUNCH_COMMAND,
        args=[server.package_spec],
        env=env_block,
    )


def render(
    descriptor: ProjectDescriptor,
    env: ResolvedEnv,
    target: IDETarget,
    catalog: Catalog,
) -> RenderedConfig:
    """Render the project's servers for one IDE target.

    ABOUTME: Unknown server ids are skipped with a warning, never fatal
    ABOUTME: The script target shares this shape; the platform layer turns it
    ABOUTME: into CLI statements

    Args:
        descriptor: Project selection to render
        env: Env values resolved for this apply
        target: IDE target being rendered for
        catalog: Catalog with server metadata

    Returns:
        RenderedConfig keyed by server id in project order
    """
    rendered = RenderedConfig(target_id=target.id)

    for server_id in descriptor.servers:
        server = catalog.servers.get(server_id)
        if server is None:
            rendered.skipped.append(server_id)
            continue
        rendered.servers[server_id] = build_launch_spec(server, env)

    if rendered.skipped:
        warnings.warn(
            f"{target.id}: skipping unknown servers: {', '.join(rendered.skipped)}",
            UserWarning,
            stacklevel=2,
        )

    return rendered
