"""IAM roles for workspaces and their owners.

Two kinds of role are maintained:

- an **instance role** per workspace (same deterministic name as the
  instance), trusted by EC2 and carrying the SSM managed-instance policy, so
  the instance can register with Session Manager;
- a **federated role** per owner, assumable through the OIDC provider of the
  configured identity issuer, whose inline policy lists the instance ARNs the
  owner may open sessions on.

Creation calls are made on every launch.  ``EntityAlreadyExists`` is treated
as success, so re-running a partially failed create converges.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import unquote

from botocore.exceptions import ClientError
from loguru import logger

from dave.user_api.aws import AwsContext
from dave.user_api.errors import InternalError
from dave.user_api.models.policy import POLICY_VERSION, FederatedPolicyDocument

FEDERATED_POLICY_NAME = "FederatedRolePermissions"
SSM_MANAGED_POLICY = "AmazonSSMManagedInstanceCore"

INSTANCE_TRUST_POLICY = {
    "Version": POLICY_VERSION,
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": ["ec2.amazonaws.com"]},
            "Action": ["sts:AssumeRole"],
        }
    ],
}


def federated_role_name(owner: str) -> str:
    return f"workspace-user-{owner}".lower()


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class IdentityRoleSynchronizer:
    """Keeps instance roles and per-owner federated policies in step with the instances."""

    def __init__(
        self,
        iam: Any,
        aws: AwsContext,
        *,
        auth_domain: str,
        client_id: str,
        username_claim: str,
    ) -> None:
        self._iam = iam
        self._aws = aws
        self._auth_domain = auth_domain
        self._client_id = client_id
        self._username_claim = username_claim

    # -- Instance role ---------------------------------------------------------

    def ensure_instance_role(self, name: str) -> None:
        """Role -> managed policy -> instance profile -> role in profile, in that order."""
        logger.info("Creating IAM role {}", name)
        self._create_tolerating_existing(
            self._iam.create_role,
            RoleName=name,
            AssumeRolePolicyDocument=json.dumps(INSTANCE_TRUST_POLICY),
        )
        logger.info("Attaching SSM managed instance policy to IAM role {}", name)
        self._iam.attach_role_policy(RoleName=name, PolicyArn=self._aws.managed_policy_arn(SSM_MANAGED_POLICY))

        logger.info("Creating instance profile {}", name)
        self._create_tolerating_existing(self._iam.create_instance_profile, InstanceProfileName=name)

        profile = self._iam.get_instance_profile(InstanceProfileName=name)["InstanceProfile"]
        if any(role["RoleName"] == name for role in profile.get("Roles", [])):
            return
        logger.info("Adding IAM role {} to instance profile {}", name, name)
        self._iam.add_role_to_instance_profile(InstanceProfileName=name, RoleName=name)

    def _create_tolerating_existing(self, create: Any, **kwargs: Any) -> None:
        try:
            create(**kwargs)
        except ClientError as e:
            if _error_code(e) != "EntityAlreadyExists":
                raise
            logger.debug("{} already exists", kwargs)

    # -- Federated role --------------------------------------------------------

    def ensure_federated_role(self, owner: str) -> str:
        """Return the ARN of the owner's federated role, creating provider and role if needed."""
        provider_arn = self._ensure_oidc_provider()
        role_name = federated_role_name(owner)
        try:
            return self._iam.get_role(RoleName=role_name)["Role"]["Arn"]
        except ClientError as e:
            if _error_code(e) != "NoSuchEntity":
                raise

        logger.info("Creating federated IAM role {} for user {}", role_name, owner)
        trust_policy = {
            "Version": POLICY_VERSION,
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"Federated": [provider_arn]},
                    "Action": ["sts:AssumeRoleWithWebIdentity"],
                    "Condition": {"StringEquals": {f"{self._auth_domain}:{self._username_claim}": owner}},
                }
            ],
        }
        resp = self._iam.create_role(RoleName=role_name, AssumeRolePolicyDocument=json.dumps(trust_policy))
        return resp["Role"]["Arn"]

    def _ensure_oidc_provider(self) -> str:
        providers = self._iam.list_open_id_connect_providers().get("OpenIDConnectProviderList", [])
        for provider in providers:
            if provider["Arn"].endswith(self._auth_domain):
                return provider["Arn"]

        logger.info("Creating OIDC provider for {}", self._auth_domain)
        resp = self._iam.create_open_id_connect_provider(
            Url=f"https://{self._auth_domain}",
            ClientIDList=[self._client_id],
        )
        return resp["OpenIDConnectProviderArn"]

    # -- Federated policy ------------------------------------------------------

    def grant_instance_access(self, owner: str, instance_arn: str) -> None:
        self.ensure_federated_role(owner)
        document = self._read_policy(owner) or FederatedPolicyDocument.empty()
        document.add_resource(instance_arn)
        self._write_policy(owner, document)

    def replace_instance_access(self, owner: str, old_instance_arn: str, new_instance_arn: str) -> None:
        document = self._read_policy(owner)
        if document is None:
            logger.error("No federated policy for user {} while replacing {}", owner, old_instance_arn)
            raise InternalError
        document.remove_resources_ending_with(old_instance_arn)
        document.add_resource(new_instance_arn)
        self._write_policy(owner, document)

    def revoke_instance_access(self, owner: str, instance_arn: str) -> None:
        document = self._read_policy(owner)
        if document is None:
            return
        document.remove_resources_ending_with(instance_arn)
        if not document.resources:
            # IAM rejects a statement without resources.
            logger.info("Last instance of user {} removed; keeping federated policy as is", owner)
            return
        self._write_policy(owner, document)

    def _read_policy(self, owner: str) -> FederatedPolicyDocument | None:
        try:
            resp = self._iam.get_role_policy(RoleName=federated_role_name(owner), PolicyName=FEDERATED_POLICY_NAME)
        except ClientError as e:
            if _error_code(e) == "NoSuchEntity":
                return None
            raise
        raw = resp["PolicyDocument"]
        # botocore usually decodes the document already; the raw API returns it URL-encoded.
        if isinstance(raw, str):
            return FederatedPolicyDocument.model_validate_json(unquote(raw))
        return FederatedPolicyDocument.model_validate(raw)

    def _write_policy(self, owner: str, document: FederatedPolicyDocument) -> None:
        self._iam.put_role_policy(
            RoleName=federated_role_name(owner),
            PolicyName=FEDERATED_POLICY_NAME,
            PolicyDocument=document.to_json(),
        )
