"""IAM policy documents managed by the identity synchronizer.

Field names follow Python conventions; aliases carry the IAM JSON keys
(``Version``, ``Statement``, ``Effect``, ``Action``, ``Resource``).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

POLICY_VERSION = "2012-10-17"

SESSION_ACTIONS = [
    "ssm:TerminateSession",
    "ssm:StartSession",
    "ssm:GetConnectionStatus",
    "ssm:DescribeSessions",
]


class Statement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    effect: str = Field(default="Allow", alias="Effect")
    actions: list[str] = Field(default_factory=list, alias="Action")
    resources: list[str] = Field(default_factory=list, alias="Resource")


class FederatedPolicyDocument(BaseModel):
    """Per-owner inline policy listing the instances the owner may open sessions on."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(default=POLICY_VERSION, alias="Version")
    statements: list[Statement] = Field(default_factory=list, alias="Statement")

    @classmethod
    def empty(cls) -> FederatedPolicyDocument:
        """A fresh document: one Allow statement with the session actions and no resources."""
        return cls(statements=[Statement(actions=list(SESSION_ACTIONS))])

    @property
    def resources(self) -> list[str]:
        if not self.statements:
            self.statements.append(Statement(actions=list(SESSION_ACTIONS)))
        return self.statements[0].resources

    def add_resource(self, arn: str) -> None:
        if arn not in self.resources:
            self.resources.append(arn)

    def remove_resources_ending_with(self, suffix: str) -> None:
        self.resources[:] = [r for r in self.resources if not r.endswith(suffix)]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
