"""Amazon SQS adapter (read-only)."""

from broker_service.adapters.sqs.adapter import SQSAdapter, create_sqs_adapter

__all__ = ["SQSAdapter", "create_sqs_adapter"]
