"""Dave - self-service cloud development workspaces."""
