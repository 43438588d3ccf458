from prometheus_client import REGISTRY


def _labelnames(metric) -> tuple:
    return tuple(getattr(metric, "_labelnames", ()) or ())


def test_no_per_session_labelnames_on_agi_metrics():
    from agi_engine import metrics

    for metric in (
        metrics._AGI_COMMANDS_TOTAL,
        metrics._AGI_COMMAND_LATENCY_SECONDS,
        metrics._AGI_SESSIONS_ACTIVE,
        metrics._AGI_SESSIONS_TOTAL,
        metrics._AGI_LATE_RESPONSES_TOTAL,
    ):
        assert "session_id" not in _labelnames(metric)
        assert "channel" not in _labelnames(metric)


async def test_session_metrics_follow_lifecycle(transport, make_engine):
    from conftest import PREAMBLE

    def _sample(name, labels=None):
        return REGISTRY.get_sample_value(name, labels or {}) or 0.0

    before_closed = _sample("agi_sessions_total", {"reason": "closed"})
    before_ok = _sample("agi_commands_total", {"command": "ANSWER", "outcome": "ok"})

    engine = make_engine()
    transport.feed(*PREAMBLE, "200 result=0")
    await engine.start()
    await engine.answer()
    await engine.close()

    assert _sample("agi_sessions_total", {"reason": "closed"}) == before_closed + 1
    assert _sample("agi_commands_total", {"command": "ANSWER", "outcome": "ok"}) == before_ok + 1


def test_no_session_labels_emitted_for_agi_metric_families():
    for family in REGISTRY.collect():
        if not family.name.startswith("agi_"):
            continue
        for sample in family.samples:
            assert "session_id" not in (sample.labels or {})
