#!/usr/bin/env python3
# CUI // SP-CTI
"""Cache binder: compute -> ElastiCache (Redis, Memcached).

ElastiCache data access is governed by the network, so besides the IAM
metadata statements this strategy emits ingress/egress rules between the
source's and the cache's security groups.
"""

from shinobi.binders.base import BinderStrategy, ComplianceFinding
from shinobi.binders.compliance import CACHE_AUTH_REQUIRED, ENCRYPTION_IN_TRANSIT_REQUIRED
from shinobi.core.models import ADMIN, READ, READWRITE, WRITE, PermissionStatement

DEFAULT_PORTS = {"cache:redis": 6379, "cache:memcached": 11211}

CACHE_METADATA = [
    "elasticache:DescribeCacheClusters",
    "elasticache:DescribeReplicationGroups",
    "elasticache:ListTagsForResource",
]
CACHE_CONNECT = ["elasticache:Connect"]
CACHE_ADMIN = [
    "elasticache:ModifyReplicationGroup",
    "elasticache:RebootCacheCluster",
    "elasticache:DeleteReplicationGroup",
]

_TABLE = {
    READ: CACHE_METADATA,
    WRITE: CACHE_METADATA + CACHE_CONNECT,
    READWRITE: CACHE_METADATA + CACHE_CONNECT,
    ADMIN: CACHE_METADATA + CACHE_CONNECT + CACHE_ADMIN,
}


class CacheBinderStrategy(BinderStrategy):
    name = "cache"
    capabilities = ("cache:redis", "cache:memcached")
    access_actions = {capability: _TABLE for capability in capabilities}

    def port(self, ctx) -> int:
        endpoints = ctx.capability_data.get("endpoints") or {}
        return int(endpoints.get("port") or DEFAULT_PORTS[ctx.capability])

    def default_environment(self, ctx):
        p = ctx.prefix
        data = ctx.capability_data
        endpoints = data.get("endpoints") or {}
        cluster = data.get("cluster") or {}
        host = endpoints.get("host")
        port = self.port(ctx)
        env = {
            "host": (f"{p}_CACHE_HOST", host),
            "port": (f"{p}_CACHE_PORT", port),
            "authToken": (f"{p}_CACHE_AUTH_TOKEN", (data.get("secrets") or {}).get("authToken")),
            "clusterEndpoint": (f"{p}_CACHE_CLUSTER_ENDPOINT", cluster.get("clusterEndpoint")),
            "writeEndpoint": (f"{p}_CACHE_WRITE_ENDPOINT", cluster.get("writeEndpoint")),
            "readEndpoint": (f"{p}_CACHE_READ_ENDPOINT", cluster.get("readEndpoint")),
        }
        if ctx.capability == "cache:redis" and host:
            scheme = "rediss" if (data.get("encryption") or {}).get("transit") else "redis"
            env["url"] = (f"{p}_REDIS_URL", f"{scheme}://{host}:{port}")
        return env

    def permissions(self, ctx):
        statements = super().permissions(ctx)
        auth_secret = (ctx.capability_data.get("secrets") or {}).get("authToken")
        if (ctx.capability_data.get("auth") or {}).get("enabled") and auth_secret:
            statements.append(PermissionStatement(
                actions=["secretsmanager:GetSecretValue", "secretsmanager:DescribeSecret"],
                resources=[auth_secret],
                conditions=self.conditions(ctx),
                description=f"Cache AUTH token access for {ctx.directive.source}",
                compliance_requirement="cache_auth",
            ))
        return statements

    def network_rules(self, ctx):
        return self.connection_rules(ctx, self.port(ctx))

    def metadata(self, ctx):
        host = (ctx.capability_data.get("endpoints") or {}).get("host")
        if not host:
            return {}
        return {"dns": {
            "type": "CNAME",
            "name": f"{ctx.directive.target}.{ctx.context.environment}.local",
            "value": host,
            "ttl": 300,
        }}

    def compliance_findings(self, ctx, result):
        data = ctx.capability_data
        findings = []
        if not (data.get("encryption") or {}).get("transit"):
            findings.append(ComplianceFinding(
                rule_id=ENCRYPTION_IN_TRANSIT_REQUIRED,
                message=f"Cache '{ctx.directive.target}' does not enforce encryption in transit",
                remediation="Set transitEncryption: true on the cache component",
            ))
        if ctx.capability == "cache:redis" and not (data.get("auth") or {}).get("enabled"):
            findings.append(ComplianceFinding(
                rule_id=CACHE_AUTH_REQUIRED,
                message=f"Cache '{ctx.directive.target}' does not require AUTH",
                remediation="Set authToken.enabled: true on the cache component",
            ))
        return findings
