#!/usr/bin/env python3
# CUI // SP-CTI
"""Bucket binder: compute -> S3 buckets."""

from shinobi.binders.base import BinderStrategy, ComplianceFinding
from shinobi.binders.compliance import ENCRYPTION_AT_REST_REQUIRED
from shinobi.core.errors import BindingOptionsError
from shinobi.core.models import ADMIN, READ, READWRITE, WRITE, ComplianceFramework, PermissionStatement

S3_READ = ["s3:GetObject", "s3:ListBucket"]
S3_WRITE = ["s3:PutObject", "s3:DeleteObject"]
S3_ADMIN = ["s3:GetBucketVersioning", "s3:PutBucketVersioning", "s3:GetBucketPolicy",
            "s3:PutBucketPolicy", "s3:DeleteObjectVersion"]
S3_DESTRUCTIVE = ["s3:DeleteBucket", "s3:DeleteBucketPolicy", "s3:PutBucketAcl", "s3:PutObjectAcl"]


class BucketBinderStrategy(BinderStrategy):
    name = "bucket"
    capabilities = ("bucket:s3",)
    access_actions = {
        "bucket:s3": {
            READ: S3_READ,
            WRITE: S3_WRITE,
            READWRITE: S3_READ + S3_WRITE,
            ADMIN: S3_READ + S3_WRITE + S3_ADMIN,
        },
    }

    def object_prefix(self, ctx) -> str:
        prefix = ctx.directive.option("prefix", "")
        if not isinstance(prefix, str) or prefix.startswith("/"):
            raise BindingOptionsError("options.prefix must be a relative key prefix",
                                      name=ctx.directive.label)
        return prefix

    def default_environment(self, ctx):
        p = ctx.prefix
        prefix = self.object_prefix(ctx)
        return {
            "bucketName": (f"{p}_BUCKET_NAME", ctx.resource("name")),
            "bucketArn": (f"{p}_BUCKET_ARN", ctx.resource("arn")),
            "region": (f"{p}_BUCKET_REGION", ctx.capability_data.get("region")),
            "prefix": (f"{p}_BUCKET_PREFIX", prefix or None),
        }

    def resources(self, ctx):
        arn = ctx.resource("arn")
        if not arn:
            return []
        return [arn, f"{arn}/{self.object_prefix(ctx)}*"]

    def permissions(self, ctx):
        statements = super().permissions(ctx)
        if ctx.framework is ComplianceFramework.FEDRAMP_HIGH:
            arn = ctx.resource("arn")
            statements.append(PermissionStatement(
                actions=S3_DESTRUCTIVE,
                resources=[arn, f"{arn}/*"],
                effect="Deny",
                description=f"Deny destructive bucket operations for {ctx.directive.source}",
                compliance_requirement="fedramp_high_bucket_protection",
            ))
            prefix = self.object_prefix(ctx)
            if prefix:
                statements.append(PermissionStatement(
                    actions=["s3:ListBucket"],
                    resources=[arn],
                    effect="Deny",
                    conditions={"StringNotLike": {"s3:prefix": [f"{prefix}*"]}},
                    description=f"Restrict listing to {prefix}",
                    compliance_requirement="fedramp_high_prefix_isolation",
                ))
        return statements

    def compliance_findings(self, ctx, result):
        encryption = ctx.capability_data.get("encryption") or {}
        if ctx.framework is ComplianceFramework.FEDRAMP_HIGH and encryption.get("type") != "kms":
            return [ComplianceFinding(
                rule_id=ENCRYPTION_AT_REST_REQUIRED,
                message=f"Bucket '{ctx.directive.target}' is not encrypted with a customer-managed KMS key",
                remediation="Set encryption.type: kms with a kmsKeyArn",
            )]
        return []
