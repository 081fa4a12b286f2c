# mcpp - Project-specific MCP server configuration manager
# ABOUTME: Version information
__version__ = "0.1.0"

# ABOUTME: Export catalog and data models
from mcpp.bundles import BundleRegistryError, BundleValidationError, CustomBundleStore
from mcpp.catalog import Catalog, default_catalog
from mcpp.models import Bundle, IDETarget, LaunchSpec, ProjectDescriptor, ServerDescriptor

# ABOUTME: Export project operations
from mcpp.manager import ApplyResult, ProjectExistsError, ProjectManager
from mcpp.project import ProjectNotInitializedError, ProjectStateError, ProjectStateStore

__all__ = [
    "__version__",
    "ApplyResult",
    "Bundle",
    "BundleRegistryError",
    "BundleValidationError",
    "Catalog",
    "CustomBundleStore",
    "IDETarget",
    "LaunchSpec",
    "ProjectDescriptor",
    "ProjectExistsError",
    "ProjectManager",
    "ProjectNotInitializedError",
    "ProjectStateError",
    "ProjectStateStore",
    "ServerDescriptor",
    "default_catalog",
]
