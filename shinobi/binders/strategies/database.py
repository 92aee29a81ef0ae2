#!/usr/bin/env python3
# CUI // SP-CTI
"""Database binder: compute -> RDS PostgreSQL."""

import re

from shinobi.binders.base import BinderStrategy, ComplianceFinding
from shinobi.binders.compliance import DATABASE_IAM_AUTH_REQUIRED
from shinobi.core.errors import BindingOptionsError
from shinobi.core.models import ADMIN, READ, READWRITE, WRITE, BindingDirective, PermissionStatement

DEFAULT_PORT = 5432

DB_DESCRIBE = ["rds:DescribeDBInstances"]
DB_ADMIN = ["rds:ModifyDBInstance", "rds:RebootDBInstance", "rds:CreateDBSnapshot"]

# SQL grants the source's database user needs; applied by the synthesis driver.
SQL_GRANTS = {
    READ: ["SELECT"],
    WRITE: ["INSERT", "UPDATE", "DELETE"],
    READWRITE: ["SELECT", "INSERT", "UPDATE", "DELETE"],
    ADMIN: ["ALL PRIVILEGES"],
}


def db_user_for(directive: BindingDirective) -> str:
    """Database user for the source: options.dbUser, else derived from its name."""
    user = directive.option("dbUser") or re.sub(r"[^a-z0-9_]+", "_", directive.source.lower())
    if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", user):
        raise BindingOptionsError(f"Invalid database user '{user}'", name=directive.label)
    return user


class DatabaseBinderStrategy(BinderStrategy):
    name = "database"
    capabilities = ("db:postgres",)
    access_actions = {
        "db:postgres": {
            READ: DB_DESCRIBE,
            WRITE: DB_DESCRIBE,
            READWRITE: DB_DESCRIBE,
            ADMIN: DB_DESCRIBE + DB_ADMIN,
        },
    }

    def port(self, ctx) -> int:
        return int((ctx.capability_data.get("endpoints") or {}).get("port") or DEFAULT_PORT)

    def iam_auth(self, ctx) -> bool:
        return bool(ctx.capability_data.get("iamAuthentication"))

    def default_environment(self, ctx):
        p = ctx.prefix
        data = ctx.capability_data
        iam_auth = self.iam_auth(ctx)
        return {
            "host": (f"{p}_DB_HOST", (data.get("endpoints") or {}).get("host")),
            "port": (f"{p}_DB_PORT", self.port(ctx)),
            "databaseName": (f"{p}_DB_NAME", data.get("databaseName")),
            "secretArn": (f"{p}_DB_SECRET_ARN",
                          None if iam_auth else (data.get("secrets") or {}).get("masterSecretArn")),
            "user": (f"{p}_DB_USER", db_user_for(ctx.directive) if iam_auth else None),
        }

    def permissions(self, ctx):
        statements = super().permissions(ctx)
        conditions = self.conditions(ctx)
        if self.iam_auth(ctx):
            resource_id = ctx.resource("dbiResourceId")
            partition = ctx.resource("arn", "arn:aws").split(":")[1]
            statements.append(PermissionStatement(
                actions=["rds-db:connect"],
                resources=[f"arn:{partition}:rds-db:{ctx.context.region}:{ctx.context.account_id}"
                           f":dbuser:{resource_id}/{db_user_for(ctx.directive)}"],
                conditions=conditions,
                description=f"IAM database authentication for {ctx.directive.source}",
                compliance_requirement="database_iam_auth",
            ))
        else:
            secret = (ctx.capability_data.get("secrets") or {}).get("masterSecretArn")
            if secret:
                statements.append(PermissionStatement(
                    actions=["secretsmanager:GetSecretValue", "secretsmanager:DescribeSecret"],
                    resources=[secret],
                    conditions=conditions,
                    description=f"Database credentials for {ctx.directive.source}",
                    compliance_requirement="database_secret",
                ))
        return statements

    def network_rules(self, ctx):
        return self.connection_rules(ctx, self.port(ctx))

    def metadata(self, ctx):
        return {"database_grants": {
            "user": db_user_for(ctx.directive),
            "database": ctx.capability_data.get("databaseName"),
            "privileges": list(SQL_GRANTS.get(ctx.access, [])),
        }}

    def compliance_findings(self, ctx, result):
        if self.iam_auth(ctx):
            return []
        return [ComplianceFinding(
            rule_id=DATABASE_IAM_AUTH_REQUIRED,
            message=f"Database '{ctx.directive.target}' is reached with a shared master secret",
            remediation="Set iamAuthentication: true on the database component",
        )]
