"""End-to-end tests wiring runner, detector, dispatcher and store together."""

import json
import pytest
from aiohttp import web
from sqlalchemy import select

from uptime_engine.core.alerts import AlertDispatcher
from uptime_engine.core.check_runner import CheckRunner
from uptime_engine.core.incidents import IncidentDetector
from uptime_engine.models.alert_history import AlertHistory
from uptime_engine.models.check import Check
from uptime_engine.models.incident import Incident


@pytest.fixture
async def engine_parts(store, alerts_config, engine_config):
    dispatcher = AlertDispatcher(store, alerts_config, threshold=3)
    detector = IncidentDetector(store, dispatcher, threshold=3)
    runner = CheckRunner(store, detector, engine_config)
    await runner.start()
    yield runner, detector
    await detector.drain(timeout=5)
    await runner.close()
    await dispatcher.close()


async def rows(db_session, model):
    result = await db_session.execute(select(model).order_by(model.id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_outage_and_recovery(engine_parts, monitor_snapshot, http_server, make_channel, db_session):
    """Three failures open one incident and alert once; recovery resolves and alerts once."""
    runner, detector = engine_parts
    healthy = {"value": False}

    async def target(request):
        return web.Response(status=200 if healthy["value"] else 502)

    http_server.responses["/target"] = target
    await make_channel("webhook", {"url": http_server.url("/hook")})
    monitor = monitor_snapshot.model_copy(update={"url": http_server.url("/target")})

    await runner.run(monitor)
    await runner.run(monitor)
    await detector.drain(timeout=5)
    assert await rows(db_session, Incident) == []
    assert http_server.requests_to("/hook") == []

    await runner.run(monitor)
    await runner.run(monitor)
    await detector.drain(timeout=5)

    incidents = await rows(db_session, Incident)
    assert len(incidents) == 1
    assert incidents[0].cause == "Expected status 200, got 502"
    hooks = [json.loads(r["body"]) for r in http_server.requests_to("/hook")]
    assert [h["type"] for h in hooks] == ["down"]

    healthy["value"] = True
    await runner.run(monitor)
    await runner.run(monitor)
    await detector.drain(timeout=5)

    db_session.expire_all()
    incidents = await rows(db_session, Incident)
    assert len(incidents) == 1
    assert incidents[0].state == "resolved"
    assert incidents[0].resolved_at >= incidents[0].started_at

    hooks = [json.loads(r["body"]) for r in http_server.requests_to("/hook")]
    assert [h["type"] for h in hooks] == ["down", "recovery"]
    assert len(await rows(db_session, Check)) == 6

    history = await rows(db_session, AlertHistory)
    assert [(h.status, h.incident_id) for h in history] == [
        ("sent", incidents[0].id),
        ("sent", incidents[0].id),
    ]
