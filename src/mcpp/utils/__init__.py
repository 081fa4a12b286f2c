# ABOUTME: Utility modules for mcpp
# ABOUTME: Exports backup helpers

from mcpp.utils.backup import cleanup_old_backups, create_backup, get_backup_dir

__all__ = [
    "cleanup_old_backups",
    "create_backup",
    "get_backup_dir",
]
