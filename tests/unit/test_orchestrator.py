"""Unit tests for waymark.orchestrator and waymark.sessions."""

from __future__ import annotations

import pytest

from tests.conftest import FakeDriver
from waymark.exceptions import SessionError
from waymark.models.state import PageState
from waymark.orchestrator import Orchestrator
from waymark.sessions import SessionStore


class TestOrchestrator:
    """Composition and page initialisation."""

    def test_components_share_driver_and_coordinator(self, driver: FakeDriver, orchestrator: Orchestrator) -> None:
        assert orchestrator.resolver.driver is driver
        assert orchestrator.forms.coordinator is orchestrator.coordinator
        assert orchestrator.journeys.coordinator is orchestrator.coordinator
        assert orchestrator.journeys.resolver is orchestrator.resolver

    @pytest.mark.anyio
    async def test_initialize_from_html(self, driver: FakeDriver, orchestrator: Orchestrator) -> None:
        await orchestrator.initialize_page(html="<form id='login'></form>")
        assert driver.contents == ["<form id='login'></form>"]
        assert driver.navigations == []

    @pytest.mark.anyio
    async def test_initialize_from_data_url(self, driver: FakeDriver, orchestrator: Orchestrator) -> None:
        await orchestrator.initialize_page(url="data:text/html,%3Cp%3Ehi%3C%2Fp%3E")
        assert driver.contents == ["<p>hi</p>"]

    @pytest.mark.anyio
    async def test_initialize_from_url_and_wait(self, driver: FakeDriver, orchestrator: Orchestrator) -> None:
        await orchestrator.initialize_page(url="https://example.test/", wait_for_stable=True)
        assert driver.navigations == ["https://example.test/"]
        assert orchestrator.coordinator.state == PageState.INTERACTIVE

    @pytest.mark.anyio
    async def test_run_journey_shortcut(self, orchestrator: Orchestrator) -> None:
        result = await orchestrator.run_journey([{"id": "s", "action": "screenshot"}])
        assert result.success

    def test_close_releases_subscriptions(self, driver: FakeDriver, fast_settings) -> None:
        orch = Orchestrator(driver, fast_settings)
        assert any(driver.listeners.values())
        orch.close()
        assert not any(driver.listeners.values())

    def test_close_stops_unfinished_recording(self, driver: FakeDriver, fast_settings) -> None:
        orch = Orchestrator(driver, fast_settings)
        orch.recorder.start_recording()
        orch.close()
        assert not orch.recorder.is_recording
        assert not any(driver.listeners.values())


class TestSessionStore:
    """Explicit session registry."""

    @pytest.fixture()
    def store(self, fast_settings) -> SessionStore:
        return SessionStore(lambda d: Orchestrator(d, fast_settings))

    def test_create_and_get(self, store: SessionStore) -> None:
        orch = store.create("tab-1", FakeDriver())
        assert store.get("tab-1") is orch
        assert "tab-1" in store
        assert len(store) == 1
        assert store.session_ids() == ["tab-1"]

    def test_sessions_are_isolated(self, store: SessionStore) -> None:
        a = store.create("a", FakeDriver())
        b = store.create("b", FakeDriver())
        a.coordinator.mark_error("crash")
        assert b.coordinator.state == PageState.LOADING

    @pytest.mark.parametrize("session_id", ["", "dup"])
    def test_create_rejects_empty_and_duplicate(self, store: SessionStore, session_id: str) -> None:
        store.create("dup", FakeDriver())
        with pytest.raises(SessionError):
            store.create(session_id, FakeDriver())

    def test_remove_closes_orchestrator(self, store: SessionStore) -> None:
        driver = FakeDriver()
        store.create("tab", driver)
        store.remove("tab")
        assert "tab" not in store
        assert not any(driver.listeners.values())

    def test_unknown_session(self, store: SessionStore) -> None:
        with pytest.raises(SessionError, match="Unknown session"):
            store.get("ghost")
        with pytest.raises(SessionError):
            store.remove("ghost")
