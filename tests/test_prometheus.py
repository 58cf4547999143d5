from form_mail_relay.prometheus import RelayMetrics


def test_relay_metrics_counters_and_gauge():
    metrics = RelayMetrics()

    metrics.inc_submission("contact")
    metrics.inc_sent("contact")
    metrics.inc_sent("application", fallback=True)
    metrics.inc_validation_failure("application")
    metrics.inc_upload_failure("application")
    metrics.inc_delivery_failure("")
    metrics.set_transport_up(True)

    output = metrics.generate_latest()
    assert b'fmr_sent_total{form="contact",route="primary"} 1.0' in output
    assert b'fmr_sent_total{form="application",route="fallback"} 1.0' in output
    assert b'fmr_delivery_failures_total{form="unknown"} 1.0' in output
    assert b"fmr_transport_up 1.0" in output


def test_registries_are_independent():
    first, second = RelayMetrics(), RelayMetrics()
    first.inc_submission("test")
    assert second.registry.get_sample_value("fmr_submissions_total", {"form": "test"}) is None
