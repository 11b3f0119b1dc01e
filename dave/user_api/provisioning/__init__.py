"""Cloud resource provisioning: network, compute, identity and instance bootstrap."""

from dave.user_api.provisioning.compute import ComputeProvisioner, Instance, Volume, deterministic_name
from dave.user_api.provisioning.identity import IdentityRoleSynchronizer
from dave.user_api.provisioning.network import Network, resolve_network
from dave.user_api.provisioning.user_data import UserDataRenderer, user_data_context

__all__ = [
    "ComputeProvisioner",
    "IdentityRoleSynchronizer",
    "Instance",
    "Network",
    "UserDataRenderer",
    "Volume",
    "deterministic_name",
    "resolve_network",
    "user_data_context",
]
