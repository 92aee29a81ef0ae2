#!/usr/bin/env python3
# CUI // SP-CTI
"""Queue binder: compute -> SQS queues and SNS topics."""

from shinobi.binders.base import BinderStrategy, ComplianceFinding
from shinobi.binders.compliance import DEAD_LETTER_QUEUE_REQUIRED, ENCRYPTION_AT_REST_REQUIRED
from shinobi.core.errors import BindingOptionsError
from shinobi.core.models import ADMIN, READ, READWRITE, WRITE, ComplianceFramework

SQS_READ = ["sqs:ReceiveMessage", "sqs:DeleteMessage", "sqs:ChangeMessageVisibility"]
SQS_WRITE = ["sqs:SendMessage", "sqs:SendMessageBatch"]
SQS_ADMIN = ["sqs:SetQueueAttributes", "sqs:GetQueueAttributes", "sqs:DeleteQueue"]

SNS_READ = ["sns:Subscribe", "sns:Unsubscribe", "sns:GetSubscriptionAttributes"]
SNS_WRITE = ["sns:Publish"]
SNS_ADMIN = ["sns:SetTopicAttributes", "sns:GetTopicAttributes", "sns:DeleteTopic"]


class QueueBinderStrategy(BinderStrategy):
    name = "queue"
    capabilities = ("queue:sqs", "topic:sns")
    access_actions = {
        "queue:sqs": {
            READ: SQS_READ,
            WRITE: SQS_WRITE,
            READWRITE: SQS_READ + SQS_WRITE,
            ADMIN: SQS_READ + SQS_WRITE + SQS_ADMIN,
        },
        "topic:sns": {
            READ: SNS_READ,
            WRITE: SNS_WRITE,
            READWRITE: SNS_WRITE + SNS_READ,
            ADMIN: SNS_WRITE + SNS_READ + SNS_ADMIN,
        },
    }

    def default_environment(self, ctx):
        p = ctx.prefix
        data = ctx.capability_data
        if ctx.capability == "topic:sns":
            return {
                "topicArn": (f"{p}_TOPIC_ARN", ctx.resource("topicArn") or ctx.resource("arn")),
                "region": (f"{p}_TOPIC_REGION", data.get("region")),
            }
        dlq = data.get("deadLetterQueue") or {}
        return {
            "queueUrl": (f"{p}_QUEUE_URL", ctx.resource("url")),
            "queueArn": (f"{p}_QUEUE_ARN", ctx.resource("arn")),
            "region": (f"{p}_QUEUE_REGION", data.get("region")),
            "dlqUrl": (f"{p}_DLQ_URL", dlq.get("url")),
            "dlqArn": (f"{p}_DLQ_ARN", dlq.get("arn")),
        }

    def resources(self, ctx):
        resources = super().resources(ctx)
        dlq = ctx.capability_data.get("deadLetterQueue") or {}
        if ctx.access in (READWRITE, ADMIN) and dlq.get("arn"):
            resources.append(dlq["arn"])
        return resources

    def metadata(self, ctx):
        trigger = ctx.directive.option("trigger", False)
        if not trigger:
            return {}
        if ctx.capability != "queue:sqs" or ctx.access not in (READ, READWRITE, ADMIN):
            raise BindingOptionsError("options.trigger needs read access to an SQS queue",
                                      name=ctx.directive.label)
        batch_size = ctx.directive.option("batchSize", 10)
        if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
            raise BindingOptionsError("options.batchSize must be a positive integer",
                                      name=ctx.directive.label)
        return {"event_source_mapping": {
            "eventSourceArn": ctx.resource("arn"),
            "batchSize": batch_size,
            "reportBatchItemFailures": True,
        }}

    def compliance_findings(self, ctx, result):
        findings = []
        data = ctx.capability_data
        if ctx.capability == "queue:sqs" and not data.get("deadLetterQueue"):
            findings.append(ComplianceFinding(
                rule_id=DEAD_LETTER_QUEUE_REQUIRED,
                message=f"Queue '{ctx.directive.target}' has no dead-letter queue configured",
                remediation="Set deadLetterQueue.enabled: true on the queue component",
                metadata={"queue": ctx.resource("arn")},
            ))
        encryption = data.get("encryption") or {}
        if ctx.framework is ComplianceFramework.FEDRAMP_HIGH and encryption.get("type") != "kms":
            findings.append(ComplianceFinding(
                rule_id=ENCRYPTION_AT_REST_REQUIRED,
                message=f"'{ctx.directive.target}' is not encrypted with a customer-managed KMS key",
                remediation="Set encryption.type: kms with a kmsKeyArn",
            ))
        return findings
