"""Workspace operations for the user API.

Managers raise domain exceptions from ``dave.user_api.errors``, never HTTP
exceptions -- that translation is the app's responsibility.
"""

from dave.user_api.managers.workspaces import WorkspaceReconciler, status_for_instance_state

__all__ = ["WorkspaceReconciler", "status_for_instance_state"]
