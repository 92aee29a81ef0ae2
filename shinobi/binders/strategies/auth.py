#!/usr/bin/env python3
# CUI // SP-CTI
"""Auth binder: compute -> Cognito user pools.

Access levels differ from the data-plane strategies: ``authenticate`` for
sign-in flows, ``read`` for user lookups, ``manage`` for user lifecycle and
``admin`` for pool administration.
"""

from shinobi.binders.base import BinderStrategy, ComplianceFinding
from shinobi.binders.compliance import MFA_REQUIRED
from shinobi.core.errors import BindingOptionsError
from shinobi.core.models import ADMIN, AUTHENTICATE, MANAGE, READ, ComplianceFramework

COGNITO_AUTHENTICATE = [
    "cognito-idp:InitiateAuth",
    "cognito-idp:RespondToAuthChallenge",
    "cognito-idp:GetUser",
]
COGNITO_READ = ["cognito-idp:AdminGetUser", "cognito-idp:ListUsers", "cognito-idp:DescribeUserPool"]
COGNITO_MANAGE = [
    "cognito-idp:AdminCreateUser",
    "cognito-idp:AdminUpdateUserAttributes",
    "cognito-idp:AdminDisableUser",
    "cognito-idp:AdminEnableUser",
    "cognito-idp:AdminResetUserPassword",
]
COGNITO_ADMIN = [
    "cognito-idp:AdminDeleteUser",
    "cognito-idp:UpdateUserPool",
    "cognito-idp:CreateUserPoolClient",
    "cognito-idp:UpdateUserPoolClient",
]


class AuthBinderStrategy(BinderStrategy):
    name = "auth"
    capabilities = ("auth:user-pool",)
    access_actions = {
        "auth:user-pool": {
            AUTHENTICATE: COGNITO_AUTHENTICATE,
            READ: COGNITO_READ,
            MANAGE: COGNITO_READ + COGNITO_MANAGE,
            ADMIN: COGNITO_READ + COGNITO_MANAGE + COGNITO_ADMIN,
        },
    }

    def client_id(self, ctx):
        clients = ctx.capability_data.get("clients") or {}
        requested = ctx.directive.option("client")
        if requested is None:
            return clients[sorted(clients)[0]] if len(clients) == 1 else None
        if requested not in clients:
            raise BindingOptionsError(
                f"User pool '{ctx.directive.target}' has no app client '{requested}' "
                f"(clients: {', '.join(sorted(clients)) or 'none'})",
                name=ctx.directive.label,
            )
        return clients[requested]

    def default_environment(self, ctx):
        p = ctx.prefix
        endpoints = ctx.capability_data.get("endpoints") or {}
        return {
            "userPoolId": (f"{p}_USER_POOL_ID", ctx.resource("userPoolId")),
            "userPoolArn": (f"{p}_USER_POOL_ARN", ctx.resource("arn")),
            "clientId": (f"{p}_USER_POOL_CLIENT_ID", self.client_id(ctx)),
            "providerUrl": (f"{p}_USER_POOL_PROVIDER_URL", endpoints.get("providerUrl")),
            "domain": (f"{p}_USER_POOL_DOMAIN", endpoints.get("domain")),
        }

    def compliance_findings(self, ctx, result):
        mfa = ctx.capability_data.get("mfa")
        if ctx.framework is ComplianceFramework.FEDRAMP_HIGH and mfa != "required":
            return [ComplianceFinding(
                rule_id=MFA_REQUIRED,
                message=f"User pool '{ctx.directive.target}' has mfa '{mfa}'",
                remediation="Set mfa: required on the user pool component",
            )]
        return []
