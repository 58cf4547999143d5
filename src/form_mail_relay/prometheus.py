# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for the form mail relay.

All metrics use the ``fmr_`` prefix and are labelled by ``form``
(``contact``, ``application`` or ``test``).

Metrics exposed:
    - ``fmr_submissions_total``: submissions received.
    - ``fmr_sent_total``: messages delivered, labelled ``route`` =
      ``primary`` or ``fallback``.
    - ``fmr_validation_failures_total``: submissions refused by validation.
    - ``fmr_upload_failures_total``: resumes refused by the attachment policy.
    - ``fmr_delivery_failures_total``: terminal delivery failures.
    - ``fmr_transport_up``: 1 when the last SMTP connectivity check succeeded.

Example:
    Scraping via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class RelayMetrics:
    """Counters and gauges kept in a private registry.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.submissions = Counter(
            "fmr_submissions_total",
            "Total form submissions received",
            ["form"],
            registry=self.registry,
        )
        self.sent = Counter(
            "fmr_sent_total",
            "Total messages delivered",
            ["form", "route"],
            registry=self.registry,
        )
        self.validation_failures = Counter(
            "fmr_validation_failures_total",
            "Total submissions rejected by validation",
            ["form"],
            registry=self.registry,
        )
        self.upload_failures = Counter(
            "fmr_upload_failures_total",
            "Total uploads rejected by the attachment policy",
            ["form"],
            registry=self.registry,
        )
        self.delivery_failures = Counter(
            "fmr_delivery_failures_total",
            "Total terminal delivery failures",
            ["form"],
            registry=self.registry,
        )
        self.transport_up = Gauge(
            "fmr_transport_up",
            "1 when the last SMTP connectivity check succeeded",
            registry=self.registry,
        )

    def inc_submission(self, form: str) -> None:
        self.submissions.labels(form=form or "unknown").inc()

    def inc_sent(self, form: str, fallback: bool = False) -> None:
        """Count a delivery on the primary or the fallback route."""
        route = "fallback" if fallback else "primary"
        self.sent.labels(form=form or "unknown", route=route).inc()

    def inc_validation_failure(self, form: str) -> None:
        self.validation_failures.labels(form=form or "unknown").inc()

    def inc_upload_failure(self, form: str) -> None:
        self.upload_failures.labels(form=form or "unknown").inc()

    def inc_delivery_failure(self, form: str) -> None:
        self.delivery_failures.labels(form=form or "unknown").inc()

    def set_transport_up(self, up: bool) -> None:
        self.transport_up.set(1 if up else 0)

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
