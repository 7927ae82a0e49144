"""Tests for component wiring in main.py."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from metaltracker.config import AppSettings, ProviderSettings
from metaltracker.main import _build_components, start_components, stop_components
from metaltracker.models import AcquisitionResult
from metaltracker.providers.metalprice import MetalpriceProvider
from metaltracker.providers.metalsdev import MetalsDevProvider


class TestBuildComponents:
    @pytest.mark.asyncio
    async def test_provider_priority_order(self, mock_settings: AppSettings) -> None:
        components = _build_components(mock_settings)
        try:
            providers = components["chain"].providers
            assert isinstance(providers[0], MetalpriceProvider)
            assert isinstance(providers[1], MetalsDevProvider)
            assert all(p.is_configured for p in providers)
        finally:
            await components["http_client"].aclose()

    @pytest.mark.asyncio
    async def test_interval_from_settings(self, mock_settings: AppSettings) -> None:
        mock_settings.refresh.interval_seconds = 120
        components = _build_components(mock_settings)
        try:
            assert components["scheduler"].interval_ms == 120_000
        finally:
            await components["http_client"].aclose()

    @pytest.mark.asyncio
    async def test_unconfigured_providers(self, mock_settings: AppSettings) -> None:
        mock_settings.providers = ProviderSettings()
        components = _build_components(mock_settings)
        try:
            assert not any(p.is_configured for p in components["chain"].providers)
        finally:
            await components["http_client"].aclose()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_seeds_history_and_stop_closes(self, mock_settings: AppSettings) -> None:
        mock_settings.refresh.enabled = False
        components = _build_components(mock_settings)

        await start_components(components, mock_settings)
        try:
            assert len(await components["service"].get_history()) == 7
        finally:
            await stop_components(components)

        assert components["http_client"].is_closed

    @pytest.mark.asyncio
    async def test_stop_lets_inflight_refresh_finish(
        self, mock_settings: AppSettings, make_record
    ) -> None:
        mock_settings.refresh.enabled = False
        components = _build_components(mock_settings)
        gate = asyncio.Event()
        expected = AcquisitionResult(make_record(source="Metals.dev"), used_fallback=False)

        async def _slow_acquire() -> AcquisitionResult:
            await gate.wait()
            return expected

        components["chain"].acquire = AsyncMock(side_effect=_slow_acquire)
        service = components["service"]

        await start_components(components, mock_settings)
        refresh = asyncio.create_task(service.acquire_and_persist())
        await asyncio.sleep(0)
        stopping = asyncio.create_task(stop_components(components))
        await asyncio.sleep(0)
        assert not stopping.done()

        gate.set()
        await stopping

        assert await refresh is expected
        assert service.notice() is None
        assert components["http_client"].is_closed
