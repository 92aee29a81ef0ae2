#!/usr/bin/env python3
# CUI // SP-CTI
"""Component type catalog.

Each component type supplies the compiled-in hardcoded fallback layer, the
schema the merged configuration must satisfy, and the capabilities a
component of that type publishes once its configuration is resolved.

Capability payloads are derived only from the context, the component name
and the resolved configuration, so repeated runs publish identical data.
"""

import hashlib
import logging
import re
from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional

from shinobi.core.errors import ConfigurationError
from shinobi.core.models import ComponentContext, ComponentSpec

logger = logging.getLogger("shinobi.config.component_types")

LOG_RETENTION_DAYS = [1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365, 400, 545, 731,
                      1827, 2192, 2557, 2922, 3288, 3653]

_MONITORING_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "enabled": {"type": "boolean"},
        "alarmEmail": {"type": ["string", "null"], "pattern": r"^[^@\s]+@[^@\s]+$"},
        "detailedMetrics": {"type": "boolean"},
    },
}

_ENCRYPTION_KMS = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "type": {"type": "string", "enum": ["service-managed", "kms"]},
        "kmsKeyArn": {"type": ["string", "null"], "pattern": r"^arn:aws[a-z-]*:kms:"},
    },
}


def _stable_suffix(*parts: str, length: int = 8) -> str:
    return hashlib.sha256("/".join(parts).encode("utf-8")).hexdigest()[:length]


def partition_for(region: str) -> str:
    if region.startswith("us-gov-"):
        return "aws-us-gov"
    if region.startswith("cn-"):
        return "aws-cn"
    return "aws"


def arn(context: ComponentContext, service: str, resource: str, region: Optional[str] = None,
        account: Optional[str] = None) -> str:
    region = context.region if region is None else region
    account = context.account_id if account is None else account
    return f"arn:{partition_for(context.region)}:{service}:{region}:{account}:{resource}"


def physical_name(context: ComponentContext, spec: ComponentSpec, max_length: int = 63) -> str:
    raw = f"{context.service_name}-{spec.name}".lower()
    return re.sub(r"[^a-z0-9-]+", "-", raw).strip("-")[:max_length]


class ComponentType:
    """Base class for component types.

    Subclasses set ``type_name`` and ``schema`` and implement
    ``hardcoded_fallbacks`` and ``publish_capabilities``.
    """

    type_name = ""
    description = ""
    schema: Dict[str, Any] = {"type": "object"}

    def hardcoded_fallbacks(self) -> Dict[str, Any]:
        return {}

    def publish_capabilities(self, context: ComponentContext, spec: ComponentSpec,
                             config: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        return {}

    def network_identity(self, context: ComponentContext, spec: ComponentSpec,
                         config: Mapping[str, Any]) -> List[str]:
        """Security group ids the component's traffic originates from."""
        return []

    def describe(self) -> dict:
        return {
            "type": self.type_name,
            "description": self.description,
            "schema": deepcopy(self.schema),
            "fallbacks": self.hardcoded_fallbacks(),
        }


# ---------------------------------------------------------------------------
# Compute
# ---------------------------------------------------------------------------

class LambdaApiType(ComponentType):
    type_name = "lambda-api"
    description = "Lambda function fronted by an HTTP API"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "required": ["runtime", "memorySize", "timeout"],
        "properties": {
            "runtime": {"type": "string",
                        "enum": ["python3.11", "python3.12", "nodejs18.x", "nodejs20.x", "java21"],
                        "default": "python3.11"},
            "handler": {"type": "string", "minLength": 1},
            "memorySize": {"type": "integer", "minimum": 128, "maximum": 10240},
            "timeout": {"type": "integer", "minimum": 1, "maximum": 900},
            "architecture": {"type": "string", "enum": ["x86_64", "arm64"], "default": "x86_64"},
            "reservedConcurrency": {"type": ["integer", "null"], "minimum": 0},
            "tracing": {"type": "boolean"},
            "environment": {"type": "object", "additionalProperties": {"type": "string"}},
            "vpc": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "enabled": {"type": "boolean"},
                    "subnetIds": {"type": "array", "items": {"type": "string"}},
                    "securityGroupIds": {"type": "array",
                                         "items": {"type": "string", "pattern": r"^sg-[a-z0-9]+$"}},
                },
            },
            "logging": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "retentionDays": {"type": "integer", "enum": LOG_RETENTION_DAYS},
                    "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARN", "ERROR"],
                              "default": "INFO"},
                },
            },
            "deadLetterQueue": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "enabled": {"type": "boolean"},
                    "maxReceiveCount": {"type": "integer", "minimum": 1, "maximum": 1000},
                },
            },
            "kmsKeyArn": {"type": ["string", "null"], "pattern": r"^arn:aws[a-z-]*:kms:"},
            "monitoring": _MONITORING_SCHEMA,
            "api": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "cors": {"type": "boolean"},
                    "authorizer": {"type": "string", "enum": ["none", "iam", "cognito"]},
                    "throttlingRateLimit": {"type": "integer", "minimum": 1},
                },
            },
        },
    }

    def hardcoded_fallbacks(self) -> Dict[str, Any]:
        return {
            "runtime": "python3.11",
            "handler": "index.handler",
            "memorySize": 512,
            "timeout": 30,
            "architecture": "x86_64",
            "reservedConcurrency": None,
            "tracing": False,
            "environment": {},
            "vpc": {"enabled": False, "subnetIds": [], "securityGroupIds": []},
            "logging": {"retentionDays": 30, "level": "INFO"},
            "deadLetterQueue": {"enabled": False, "maxReceiveCount": 3},
            "monitoring": {"enabled": False, "detailedMetrics": False},
            "api": {"cors": False, "authorizer": "none", "throttlingRateLimit": 1000},
        }

    def publish_capabilities(self, context, spec, config):
        name = physical_name(context, spec, max_length=64)
        payload = {
            "type": "compute:lambda",
            "resources": {
                "functionName": name,
                "arn": arn(context, "lambda", f"function:{name}"),
                "roleArn": arn(context, "iam", f"role/{name}-role", region=""),
            },
            "securityGroups": self.network_identity(context, spec, config),
        }
        capabilities = {"compute:lambda": payload}
        if self.type_name == "lambda-api":
            api_id = _stable_suffix(context.account_id, context.region, name, length=10)
            capabilities["api:http"] = {
                "type": "api:http",
                "resources": {"apiId": api_id,
                              "arn": arn(context, "execute-api", api_id)},
                "endpoints": {"url": f"https://{api_id}.execute-api.{context.region}.amazonaws.com"},
                "authorizer": (config.get("api") or {}).get("authorizer") or "none",
            }
        return capabilities

    def network_identity(self, context, spec, config):
        vpc = config.get("vpc") or {}
        if not vpc.get("enabled"):
            return []
        declared = list(vpc.get("securityGroupIds") or [])
        if declared:
            return declared
        return [f"sg-{_stable_suffix(context.account_id, context.service_name, spec.name, length=17)}"]


class LambdaWorkerType(LambdaApiType):
    type_name = "lambda-worker"
    description = "Lambda function driven by events or queues"

    schema = deepcopy(LambdaApiType.schema)
    schema["properties"].pop("api")
    schema["properties"]["batchSize"] = {"type": "integer", "minimum": 1, "maximum": 10000}

    def hardcoded_fallbacks(self) -> Dict[str, Any]:
        fallbacks = super().hardcoded_fallbacks()
        fallbacks.pop("api")
        fallbacks["timeout"] = 60
        fallbacks["batchSize"] = 10
        return fallbacks


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------

class SqsQueueType(ComponentType):
    type_name = "sqs-queue"
    description = "SQS queue with optional dead-letter queue"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "required": ["visibilityTimeout", "messageRetentionPeriod"],
        "properties": {
            "fifo": {"type": "boolean"},
            "visibilityTimeout": {"type": "integer", "minimum": 0, "maximum": 43200},
            "messageRetentionPeriod": {"type": "integer", "minimum": 60, "maximum": 1209600},
            "encryption": _ENCRYPTION_KMS,
            "deadLetterQueue": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "enabled": {"type": "boolean"},
                    "maxReceiveCount": {"type": "integer", "minimum": 1, "maximum": 1000},
                },
            },
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "fifo": False,
            "visibilityTimeout": 30,
            "messageRetentionPeriod": 345600,
            "encryption": {"type": "service-managed", "kmsKeyArn": None},
            "deadLetterQueue": {"enabled": False, "maxReceiveCount": 3},
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        name = physical_name(context, spec, max_length=75)
        if config.get("fifo"):
            name = f"{name}.fifo"
        queue_url = f"https://sqs.{context.region}.amazonaws.com/{context.account_id}/{name}"
        payload = {
            "type": "queue:sqs",
            "region": context.region,
            "fifo": bool(config.get("fifo")),
            "resources": {"name": name, "arn": arn(context, "sqs", name), "url": queue_url},
            "encryption": deepcopy(config.get("encryption") or {}),
        }
        dlq = config.get("deadLetterQueue") or {}
        if dlq.get("enabled"):
            dlq_name = f"{physical_name(context, spec, max_length=70)}-dlq"
            payload["deadLetterQueue"] = {
                "arn": arn(context, "sqs", dlq_name),
                "url": f"https://sqs.{context.region}.amazonaws.com/{context.account_id}/{dlq_name}",
                "maxReceiveCount": dlq.get("maxReceiveCount", 3),
            }
        return {"queue:sqs": payload}


class SnsTopicType(ComponentType):
    type_name = "sns-topic"
    description = "SNS topic"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "fifo": {"type": "boolean"},
            "displayName": {"type": "string", "maxLength": 100},
            "encryption": _ENCRYPTION_KMS,
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "fifo": False,
            "encryption": {"type": "service-managed", "kmsKeyArn": None},
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        name = physical_name(context, spec, max_length=251)
        topic_arn = arn(context, "sns", name)
        return {"topic:sns": {
            "type": "topic:sns",
            "region": context.region,
            "resources": {"name": name, "arn": topic_arn, "topicArn": topic_arn},
            "encryption": deepcopy(config.get("encryption") or {}),
        }}


class KinesisStreamType(ComponentType):
    type_name = "kinesis-stream"
    description = "Kinesis data stream"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "streamMode": {"type": "string", "enum": ["provisioned", "on-demand"],
                           "default": "provisioned"},
            "shardCount": {"type": "integer", "minimum": 1, "maximum": 500},
            "retentionHours": {"type": "integer", "minimum": 24, "maximum": 8760},
            "encryption": _ENCRYPTION_KMS,
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "streamMode": "provisioned",
            "shardCount": 1,
            "retentionHours": 24,
            "encryption": {"type": "service-managed", "kmsKeyArn": None},
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        name = physical_name(context, spec, max_length=128)
        return {"stream:kinesis": {
            "type": "stream:kinesis",
            "region": context.region,
            "resources": {"name": name, "arn": arn(context, "kinesis", f"stream/{name}")},
            "encryption": deepcopy(config.get("encryption") or {}),
        }}


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

class ElastiCacheRedisType(ComponentType):
    type_name = "elasticache-redis"
    description = "ElastiCache Redis replication group"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "required": ["nodeType", "port"],
        "properties": {
            "engine": {"type": "string", "enum": ["redis", "memcached"]},
            "engineVersion": {"type": "string", "pattern": r"^\d+\.\d+(\.\d+)?$"},
            "nodeType": {"type": "string", "pattern": r"^cache\.[a-z0-9]+\.[a-z0-9]+$"},
            "numCacheNodes": {"type": "integer", "minimum": 1, "maximum": 40},
            "port": {"type": "integer", "minimum": 1024, "maximum": 65535},
            "multiAz": {"type": "boolean"},
            "transitEncryption": {"type": "boolean"},
            "atRestEncryption": {"type": "boolean"},
            "authToken": {
                "type": "object",
                "additionalProperties": False,
                "properties": {"enabled": {"type": "boolean"}},
            },
            "securityGroupIds": {"type": "array",
                                 "items": {"type": "string", "pattern": r"^sg-[a-z0-9]+$"}},
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "engine": "redis",
            "engineVersion": "7.0",
            "nodeType": "cache.t3.micro",
            "numCacheNodes": 1,
            "port": 6379,
            "multiAz": False,
            "transitEncryption": False,
            "atRestEncryption": False,
            "authToken": {"enabled": False},
            "securityGroupIds": [],
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        name = physical_name(context, spec, max_length=40)
        engine = config.get("engine") or "redis"
        host = f"{name}.{_stable_suffix(context.account_id, name, length=6)}.cache.amazonaws.com"
        payload = {
            "type": f"cache:{engine}",
            "endpoints": {"host": host, "port": config.get("port")},
            "resources": {"arn": arn(context, "elasticache", f"replicationgroup:{name}")},
            "auth": {"enabled": bool((config.get("authToken") or {}).get("enabled"))},
            "encryption": {"transit": bool(config.get("transitEncryption")),
                           "atRest": bool(config.get("atRestEncryption"))},
            "securityGroups": self.network_identity(context, spec, config),
        }
        if payload["auth"]["enabled"]:
            payload["secrets"] = {"authToken": arn(context, "secretsmanager", f"secret:{name}-auth")}
        if (config.get("numCacheNodes") or 1) > 1:
            payload["cluster"] = {
                "clusterEndpoint": f"clustercfg.{host}",
                "writeEndpoint": f"master.{host}",
                "readEndpoint": f"replica.{host}",
            }
        return {f"cache:{engine}": payload}

    def network_identity(self, context, spec, config):
        declared = list(config.get("securityGroupIds") or [])
        if declared:
            return declared
        return [f"sg-{_stable_suffix(context.account_id, context.service_name, spec.name, length=17)}"]


class RdsPostgresType(ComponentType):
    type_name = "rds-postgres"
    description = "RDS PostgreSQL instance"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "required": ["instanceClass", "allocatedStorage", "databaseName"],
        "properties": {
            "engineVersion": {"type": "string", "pattern": r"^\d+(\.\d+)?$"},
            "instanceClass": {"type": "string", "pattern": r"^db\.[a-z0-9]+\.[a-z0-9]+$"},
            "allocatedStorage": {"type": "integer", "minimum": 20, "maximum": 65536},
            "databaseName": {"type": "string", "pattern": r"^[A-Za-z][A-Za-z0-9_]{0,62}$"},
            "port": {"type": "integer", "minimum": 1150, "maximum": 65535},
            "storageEncrypted": {"type": "boolean"},
            "multiAz": {"type": "boolean"},
            "backupRetentionDays": {"type": "integer", "minimum": 0, "maximum": 35},
            "deletionProtection": {"type": "boolean"},
            "iamAuthentication": {"type": "boolean"},
            "performanceInsights": {"type": "boolean"},
            "securityGroupIds": {"type": "array",
                                 "items": {"type": "string", "pattern": r"^sg-[a-z0-9]+$"}},
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "engineVersion": "15.4",
            "instanceClass": "db.t3.micro",
            "allocatedStorage": 20,
            "databaseName": "app",
            "port": 5432,
            "storageEncrypted": False,
            "multiAz": False,
            "backupRetentionDays": 7,
            "deletionProtection": False,
            "iamAuthentication": False,
            "performanceInsights": False,
            "securityGroupIds": [],
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        name = physical_name(context, spec, max_length=63)
        resource_id = f"db-{_stable_suffix(context.account_id, context.region, name, length=26).upper()}"
        return {"db:postgres": {
            "type": "db:postgres",
            "endpoints": {"host": f"{name}.{_stable_suffix(context.account_id, length=12)}"
                                  f".{context.region}.rds.amazonaws.com",
                          "port": config.get("port")},
            "resources": {"arn": arn(context, "rds", f"db:{name}"), "dbiResourceId": resource_id},
            "secrets": {"masterSecretArn": arn(context, "secretsmanager", f"secret:{name}-master")},
            "databaseName": config.get("databaseName"),
            "iamAuthentication": bool(config.get("iamAuthentication")),
            "securityGroups": self.network_identity(context, spec, config),
        }}

    def network_identity(self, context, spec, config):
        declared = list(config.get("securityGroupIds") or [])
        if declared:
            return declared
        return [f"sg-{_stable_suffix(context.account_id, context.service_name, spec.name, length=17)}"]


class S3BucketType(ComponentType):
    type_name = "s3-bucket"
    description = "S3 bucket"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "versioning": {"type": "boolean"},
            "encryption": _ENCRYPTION_KMS,
            "blockPublicAccess": {"type": "boolean"},
            "accessLogging": {"type": "boolean"},
            "objectLock": {"type": "boolean"},
            "lifecycleRules": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["id"],
                    "additionalProperties": False,
                    "properties": {
                        "id": {"type": "string", "minLength": 1},
                        "expirationDays": {"type": "integer", "minimum": 1},
                        "transitionToGlacierDays": {"type": "integer", "minimum": 1},
                    },
                },
            },
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "versioning": False,
            "encryption": {"type": "service-managed", "kmsKeyArn": None},
            "blockPublicAccess": True,
            "accessLogging": False,
            "objectLock": False,
            "lifecycleRules": [],
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        name = f"{physical_name(context, spec, max_length=50)}-{context.account_id[-6:]}"
        return {"bucket:s3": {
            "type": "bucket:s3",
            "region": context.region,
            "resources": {"name": name, "arn": f"arn:{partition_for(context.region)}:s3:::{name}"},
            "encryption": deepcopy(config.get("encryption") or {}),
        }}


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class CognitoUserPoolType(ComponentType):
    type_name = "cognito-user-pool"
    description = "Cognito user pool with app clients"

    schema = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "signInAliases": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "email": {"type": "boolean"},
                    "username": {"type": "boolean"},
                    "phone": {"type": "boolean"},
                },
            },
            "mfa": {"type": "string", "enum": ["off", "optional", "required"], "default": "optional"},
            "advancedSecurityMode": {"type": "string", "enum": ["off", "audit", "enforced"]},
            "passwordPolicy": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "minLength": {"type": "integer", "minimum": 6, "maximum": 99},
                    "requireSymbols": {"type": "boolean"},
                    "requireDigits": {"type": "boolean"},
                    "tempPasswordValidityDays": {"type": "integer", "minimum": 1, "maximum": 365},
                },
            },
            "deletionProtection": {"type": "boolean"},
            "domainPrefix": {"type": ["string", "null"], "pattern": r"^[a-z0-9-]{1,63}$"},
            "appClients": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["name"],
                    "additionalProperties": False,
                    "properties": {
                        "name": {"type": "string", "pattern": r"^[A-Za-z0-9_-]+$"},
                        "generateSecret": {"type": "boolean"},
                    },
                },
            },
            "monitoring": _MONITORING_SCHEMA,
        },
    }

    def hardcoded_fallbacks(self):
        return {
            "signInAliases": {"email": True, "username": False, "phone": False},
            "mfa": "optional",
            "advancedSecurityMode": "off",
            "passwordPolicy": {"minLength": 8, "requireSymbols": True, "requireDigits": True,
                               "tempPasswordValidityDays": 7},
            "deletionProtection": False,
            "domainPrefix": None,
            "appClients": [],
            "monitoring": {"enabled": False, "detailedMetrics": False},
        }

    def publish_capabilities(self, context, spec, config):
        pool_id = f"{context.region}_{_stable_suffix(context.account_id, context.service_name, spec.name, length=9)}"
        clients = {
            client["name"]: _stable_suffix(pool_id, client["name"], length=26)
            for client in config.get("appClients") or []
        }
        payload = {
            "type": "auth:user-pool",
            "region": context.region,
            "resources": {"userPoolId": pool_id,
                          "arn": arn(context, "cognito-idp", f"userpool/{pool_id}")},
            "endpoints": {"providerUrl": f"https://cognito-idp.{context.region}.amazonaws.com/{pool_id}"},
            "clients": clients,
            "mfa": config.get("mfa"),
        }
        if config.get("domainPrefix"):
            payload["endpoints"]["domain"] = (
                f"https://{config['domainPrefix']}.auth.{context.region}.amazoncognito.com"
            )
        return {"auth:user-pool": payload}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ComponentTypeRegistry:
    """String-keyed catalog of component types."""

    def __init__(self):
        self._types: Dict[str, ComponentType] = {}

    def register(self, component_type: ComponentType) -> None:
        if not component_type.type_name:
            raise ValueError(f"{type(component_type).__name__} has no type_name")
        if component_type.type_name in self._types:
            raise ValueError(f"Component type '{component_type.type_name}' already registered")
        self._types[component_type.type_name] = component_type

    def get(self, type_name: str, component_name: str = "") -> ComponentType:
        try:
            return self._types[type_name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown component type '{type_name}' (available: {', '.join(self.type_names())})",
                config_key="type",
                name=component_name,
            ) from None

    def has(self, type_name: str) -> bool:
        return type_name in self._types

    def type_names(self) -> List[str]:
        return sorted(self._types)


BUILTIN_TYPES = (
    LambdaApiType, LambdaWorkerType, SqsQueueType, SnsTopicType, KinesisStreamType,
    ElastiCacheRedisType, RdsPostgresType, S3BucketType, CognitoUserPoolType,
)


def default_component_types() -> ComponentTypeRegistry:
    registry = ComponentTypeRegistry()
    for cls in BUILTIN_TYPES:
        registry.register(cls())
    logger.debug("Registered %d built-in component types", len(BUILTIN_TYPES))
    return registry
