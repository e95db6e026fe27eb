"""cloud-backup — scheduled, change-aware archive uploads to remote storage."""

__version__ = "0.1.0"
