"""HTTP API through which users create, inspect, update and delete their workspaces."""
