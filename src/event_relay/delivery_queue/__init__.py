"""
Package: delivery_queue
Description: Delivery job queue with leases and scheduled visibility.

DeliveryQueue holds the retry/exhaustion rules; the storage of jobs is
an injected backend:
- memory: single-process backend for tests and local runs
- sqs: SQS backend (visibility timeout as the lease)
"""
