"""User directory lookups consumed by RBAC."""

from .directory import DirectoryUser, SqlUserDirectory, UserDirectory

__all__ = ["DirectoryUser", "SqlUserDirectory", "UserDirectory"]
