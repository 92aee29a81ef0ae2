#!/usr/bin/env python3
# CUI // SP-CTI
"""Stream binder: compute -> Kinesis data streams."""

from shinobi.binders.base import BinderStrategy, ComplianceFinding
from shinobi.binders.compliance import ENCRYPTION_AT_REST_REQUIRED
from shinobi.core.models import ADMIN, READ, READWRITE, WRITE, PermissionStatement

KINESIS_READ = [
    "kinesis:DescribeStream",
    "kinesis:DescribeStreamSummary",
    "kinesis:ListShards",
    "kinesis:GetRecords",
    "kinesis:GetShardIterator",
]
KINESIS_WRITE = ["kinesis:DescribeStreamSummary", "kinesis:PutRecord", "kinesis:PutRecords"]
KINESIS_ADMIN = ["kinesis:UpdateShardCount", "kinesis:DeleteStream", "kinesis:AddTagsToStream"]


def _union(*groups):
    actions = []
    for group in groups:
        actions.extend(a for a in group if a not in actions)
    return actions


class StreamBinderStrategy(BinderStrategy):
    name = "stream"
    capabilities = ("stream:kinesis",)
    access_actions = {
        "stream:kinesis": {
            READ: KINESIS_READ,
            WRITE: KINESIS_WRITE,
            READWRITE: _union(KINESIS_READ, KINESIS_WRITE),
            ADMIN: _union(KINESIS_READ, KINESIS_WRITE, KINESIS_ADMIN),
        },
    }

    def default_environment(self, ctx):
        p = ctx.prefix
        return {
            "streamName": (f"{p}_STREAM_NAME", ctx.resource("name")),
            "streamArn": (f"{p}_STREAM_ARN", ctx.resource("arn")),
            "region": (f"{p}_STREAM_REGION", ctx.capability_data.get("region")),
        }

    def permissions(self, ctx):
        statements = super().permissions(ctx)
        encryption = ctx.capability_data.get("encryption") or {}
        if encryption.get("type") == "kms" and encryption.get("kmsKeyArn"):
            statements.append(PermissionStatement(
                actions=["kms:Decrypt"] if ctx.access == READ else ["kms:Decrypt", "kms:GenerateDataKey"],
                resources=[encryption["kmsKeyArn"]],
                conditions=self.conditions(ctx),
                description=f"Stream encryption key for {ctx.directive.source}",
                compliance_requirement="stream_kms",
            ))
        return statements

    def compliance_findings(self, ctx, result):
        if (ctx.capability_data.get("encryption") or {}).get("type") != "kms":
            return [ComplianceFinding(
                rule_id=ENCRYPTION_AT_REST_REQUIRED,
                message=f"Stream '{ctx.directive.target}' is not encrypted with a customer-managed KMS key",
                remediation="Set encryption.type: kms with a kmsKeyArn",
            )]
        return []
