"""
Module: metrics.py
Description: CloudWatch custom metrics publishing.

Publishes delivery outcomes and rate limit decisions to CloudWatch.
Metrics are non-authoritative: a failure to publish is logged and
never affects delivery or request handling.

Key Components:
- MetricsClient: CloudWatch metrics client
- put_metric(): Publish individual metrics

Dependencies: boto3, typing, logger
Author: Event Relay Team
"""

from typing import Optional

import boto3

from event_relay.utils.logger import get_logger

logger = get_logger(__name__)


class MetricsClient:
    """CloudWatch metrics client."""

    def __init__(self, namespace: str = "EventRelay", region_name: Optional[str] = None):
        """
        Initialize metrics client.

        Args:
            namespace: CloudWatch metrics namespace
            region_name: AWS region (defaults to the boto3 session region)
        """
        self.namespace = namespace
        self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)

        logger.info(
            "Metrics client initialized",
            namespace=namespace
        )

    def put_metric(
        self,
        metric_name: str,
        value: float = 1,
        unit: str = 'Count',
        dimensions: Optional[dict] = None
    ) -> None:
        """
        Publish a metric to CloudWatch.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (Count, Seconds, etc.)
            dimensions: Optional metric dimensions
        """
        try:
            metric_data = {
                'MetricName': metric_name,
                'Value': value,
                'Unit': unit
            }

            if dimensions:
                metric_data['Dimensions'] = [
                    {'Name': k, 'Value': str(v)}
                    for k, v in dimensions.items()
                ]

            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )

            logger.debug(
                "Metric published to CloudWatch",
                metric_name=metric_name,
                value=value,
                unit=unit,
                dimensions=dimensions,
                namespace=self.namespace
            )

        except Exception as e:
            # Don't fail deliveries or requests if metrics fail
            logger.warning(
                "Failed to publish metric",
                metric_name=metric_name,
                value=value,
                error=str(e),
                namespace=self.namespace
            )
