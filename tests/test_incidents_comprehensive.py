"""Comprehensive tests for the incident state machine."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select

from uptime_engine.core.incidents import DEFAULT_INCIDENT_CAUSE, IncidentDetector
from uptime_engine.models.enums import IncidentState
from uptime_engine.models.incident import Incident


@pytest.fixture
def mock_dispatcher():
    """Alert dispatcher stand-in."""
    dispatcher = MagicMock()
    dispatcher.dispatch_down = AsyncMock(return_value=[])
    dispatcher.dispatch_recovery = AsyncMock(return_value=[])
    return dispatcher


@pytest.fixture
def detector(store, mock_dispatcher):
    """Incident detector with the default threshold."""
    return IncidentDetector(store, mock_dispatcher, threshold=3)


async def probe(store, detector, monitor, is_up, error="Expected status 200, got 500"):
    """Persist a check and evaluate it, as the check runner does."""
    error_message = None if is_up else error
    await store.save_check(
        monitor_id=monitor.id,
        status_code=200 if is_up else 500,
        response_time_ms=10,
        is_up=is_up,
        error_message=error_message,
        response_body=None,
        region="us-east-1"
    )
    return await detector.evaluate(monitor, is_up, error_message)


async def all_incidents(db_session, monitor_id):
    result = await db_session.execute(
        select(Incident).where(Incident.monitor_id == monitor_id).order_by(Incident.id)
    )
    return list(result.scalars().all())


class TestOpening:
    """Tests for opening incidents."""

    @pytest.mark.asyncio
    async def test_opens_after_third_consecutive_failure(self, store, detector, monitor_snapshot, mock_dispatcher):
        """An incident opens on the third consecutive down, not the second."""
        assert await probe(store, detector, monitor_snapshot, False) is None
        assert await probe(store, detector, monitor_snapshot, False) is None

        incident = await probe(store, detector, monitor_snapshot, False)
        await detector.drain()

        assert incident is not None
        assert incident.state == IncidentState.ONGOING.value
        assert incident.cause == "Expected status 200, got 500"
        mock_dispatcher.dispatch_down.assert_awaited_once_with(
            monitor_snapshot, incident.id, "Expected status 200, got 500"
        )
        mock_dispatcher.dispatch_recovery.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_up_within_window_prevents_incident(self, store, detector, monitor_snapshot, db_session):
        """An up check inside the window keeps the monitor incident-free."""
        await probe(store, detector, monitor_snapshot, False)
        await probe(store, detector, monitor_snapshot, False)
        await probe(store, detector, monitor_snapshot, True)
        await probe(store, detector, monitor_snapshot, False)
        await probe(store, detector, monitor_snapshot, False)

        assert await all_incidents(db_session, monitor_snapshot.id) == []

    @pytest.mark.asyncio
    async def test_up_without_incident_does_nothing(self, store, detector, monitor_snapshot, mock_dispatcher):
        """No incident and an up probe is a no-op."""
        assert await probe(store, detector, monitor_snapshot, True) is None
        await detector.drain()

        mock_dispatcher.dispatch_down.assert_not_awaited()
        mock_dispatcher.dispatch_recovery.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_default_cause_without_error(self, store, detector, monitor_snapshot):
        """A missing error description falls back to the generic cause."""
        for _ in range(2):
            await probe(store, detector, monitor_snapshot, False)
        await store.save_check(
            monitor_id=monitor_snapshot.id,
            status_code=None,
            response_time_ms=None,
            is_up=False,
            error_message=None,
            response_body=None,
            region="us-east-1"
        )

        incident = await detector.evaluate(monitor_snapshot, False, None)

        assert incident.cause == DEFAULT_INCIDENT_CAUSE

    @pytest.mark.asyncio
    async def test_threshold_of_one(self, store, monitor_snapshot, mock_dispatcher):
        """With a threshold of one the first down opens an incident."""
        detector = IncidentDetector(store, mock_dispatcher, threshold=1)

        incident = await probe(store, detector, monitor_snapshot, False)
        await detector.drain()

        assert incident is not None
        mock_dispatcher.dispatch_down.assert_awaited_once()

    def test_invalid_threshold(self, store, mock_dispatcher):
        """Thresholds below one are rejected."""
        with pytest.raises(ValueError):
            IncidentDetector(store, mock_dispatcher, threshold=0)


class TestOngoing:
    """Tests for monitors with an ongoing incident."""

    @pytest.mark.asyncio
    async def test_further_failures_do_not_open_another(self, store, detector, monitor_snapshot, db_session, mock_dispatcher):
        """Downs during an ongoing incident change nothing."""
        for _ in range(6):
            await probe(store, detector, monitor_snapshot, False)
        await detector.drain()

        incidents = await all_incidents(db_session, monitor_snapshot.id)
        assert len(incidents) == 1
        assert mock_dispatcher.dispatch_down.await_count == 1

    @pytest.mark.asyncio
    async def test_recovery_resolves_incident(self, store, detector, monitor_snapshot, mock_dispatcher):
        """An up probe resolves the ongoing incident and dispatches recovery once."""
        for _ in range(3):
            opened = await probe(store, detector, monitor_snapshot, False)

        resolved = await probe(store, detector, monitor_snapshot, True)
        await probe(store, detector, monitor_snapshot, True)
        await detector.drain()

        assert resolved.id == opened.id
        assert resolved.state == IncidentState.RESOLVED.value
        assert resolved.resolved_at is not None
        assert resolved.resolved_at >= resolved.started_at
        mock_dispatcher.dispatch_recovery.assert_awaited_once_with(monitor_snapshot, resolved.id)

    @pytest.mark.asyncio
    async def test_new_incident_after_recovery(self, store, detector, monitor_snapshot, db_session):
        """A monitor can have many resolved incidents but one ongoing."""
        for _ in range(3):
            await probe(store, detector, monitor_snapshot, False)
        await probe(store, detector, monitor_snapshot, True)
        for _ in range(3):
            await probe(store, detector, monitor_snapshot, False)

        incidents = await all_incidents(db_session, monitor_snapshot.id)
        assert [i.state for i in incidents] == [
            IncidentState.RESOLVED.value,
            IncidentState.ONGOING.value,
        ]


class TestConcurrency:
    """Tests for the at-most-one-ongoing guarantee."""

    @pytest.mark.asyncio
    async def test_concurrent_evaluations_open_one_incident(self, store, detector, monitor_snapshot, db_session, mock_dispatcher):
        """Racing evaluations for the same monitor open a single incident."""
        for _ in range(3):
            await store.save_check(
                monitor_id=monitor_snapshot.id,
                status_code=500,
                response_time_ms=5,
                is_up=False,
                error_message="Expected status 200, got 500",
                response_body=None,
                region="us-east-1"
            )

        results = await asyncio.gather(*(
            detector.evaluate(monitor_snapshot, False, "Expected status 200, got 500")
            for _ in range(5)
        ))
        await detector.drain()

        assert len([r for r in results if r is not None]) == 1
        assert len(await all_incidents(db_session, monitor_snapshot.id)) == 1
        assert mock_dispatcher.dispatch_down.await_count == 1

    @pytest.mark.asyncio
    async def test_store_rejects_second_ongoing_incident(self, store, monitor_snapshot):
        """The storage constraint refuses a second ongoing incident."""
        first = await store.open_incident(monitor_snapshot.id, "first")
        second = await store.open_incident(monitor_snapshot.id, "second")

        assert first is not None
        assert second is None


class TestDispatchIsolation:
    """Tests for background alert dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_escape(self, store, detector, monitor_snapshot, mock_dispatcher):
        """A failing dispatch is logged, never raised into the probe path."""
        mock_dispatcher.dispatch_down.side_effect = RuntimeError("dispatcher exploded")

        for _ in range(3):
            incident = await probe(store, detector, monitor_snapshot, False)

        assert incident is not None
        assert await detector.drain(timeout=5) is True
        assert len(detector.dispatches) == 0

    @pytest.mark.asyncio
    async def test_evaluate_does_not_wait_for_dispatch(self, store, detector, monitor_snapshot, mock_dispatcher):
        """Evaluation returns while the dispatch is still running."""
        release = asyncio.Event()

        async def slow_dispatch(*args):
            await release.wait()
            return []

        mock_dispatcher.dispatch_down.side_effect = slow_dispatch

        for _ in range(3):
            await probe(store, detector, monitor_snapshot, False)

        assert len(detector.dispatches) == 1
        release.set()
        assert await detector.drain(timeout=5) is True
