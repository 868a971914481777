"""Shared fixtures and a mock Momentum server for sync pipeline tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from companion.api.client import MomentumClient
from companion.config import Settings
from companion.health.base import RawSleepStage, RecordType
from companion.health.config_loader import load_sources_config
from companion.health.reader import HealthReader
from companion.health.reconciler import SourceReconciler
from companion.health.tests.conftest import (
    ANDROID_PLATFORM,
    GOOGLE_FIT,
    SAMSUNG_HEALTH,
    TEST_DATE,
    TEST_ZONE,
    InMemorySource,
    at,
    calories,
    exercise,
    sleep,
    steps,
)
from companion.preferences import AppPreferences
from companion.sync.orchestrator import SyncOrchestrator
from companion.sync.sync_log import SyncLogRepository

SERVER_URL = "https://momentum.test/api/"
CACHED_TOKEN = "cached-token"
FRESH_TOKEN = "fresh-token"
TEST_EMAIL = "runner@example.com"
TEST_PASSWORD = "s3cret"

# 10:00 local on the day after TEST_DATE
FIXED_NOW = datetime(2025, 6, 16, 8, 0, tzinfo=timezone.utc)
TODAY = TEST_DATE + timedelta(days=1)


# ---------------------------------------------------------------------------
# Mock server
# ---------------------------------------------------------------------------


class FakeMomentumServer:
    """In-process Momentum API behind ``httpx.MockTransport``.

    Health-sync submissions are parsed back and the counts echoed in the
    ``synced`` block, like the real server does.

    Attributes:
        requests:       Every request received, in order.
        sync_payloads:  Parsed bodies of accepted health-sync submissions.
        sync_statuses:  Queued status codes for the next submissions
                        (200 once the queue is empty).
        login_status:   Status code returned by auth/login.
        login_html:     When True auth/login answers 200 with an HTML page.
        connect_error:  When True every request fails at the transport level.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.sync_payloads: list[dict] = []
        self.sync_statuses: list[int] = []
        self.login_status = 200
        self.login_token_key = "accessToken"
        self.login_html = False
        self.connect_error = False
        self.status_body: dict = {"configured": True, "lastSync": None}

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.connect_error:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if path == "/api/auth/login":
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"error": "Invalid credentials"})
            if self.login_html:
                return httpx.Response(200, text="<html>Sign in to the Wi-Fi</html>")
            body = json.loads(request.content)
            return httpx.Response(200, json={
                self.login_token_key: FRESH_TOKEN,
                "user": {"id": "u-1", "email": body["email"], "name": "Runner"},
            })

        if path == "/api/health-sync/status":
            if request.headers.get("Authorization") != f"Bearer {CACHED_TOKEN}":
                return httpx.Response(401, json={"error": "Unauthorized"})
            return httpx.Response(200, json=self.status_body)

        if path == "/api/health-sync":
            status = self.sync_statuses.pop(0) if self.sync_statuses else 200
            if status != 200:
                return httpx.Response(status, json={"error": "rejected"})
            payload = json.loads(request.content)
            self.sync_payloads.append(payload)
            return httpx.Response(200, json={
                "synced": {
                    "dailyMetrics": len(payload["dailyMetrics"]),
                    "activities": len(payload["activities"]),
                    "sleepSessions": len(payload["sleepSessions"]),
                },
                "device": {"id": "dev-1", "lastSyncAt": payload["syncedAt"]},
            })

        return httpx.Response(404, json={"error": "Not found"})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def server() -> FakeMomentumServer:
    return FakeMomentumServer()


@pytest.fixture
def backend_factory(server: FakeMomentumServer):
    def _factory(server_url: str, allow_self_signed: bool) -> MomentumClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
        return MomentumClient(server_url, allow_self_signed=allow_self_signed, http_client=http_client)

    return _factory


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        state_dir=tmp_path,
        health_export_path=tmp_path / "health_export.json",
        device_name="test-device",
        sync_settle_seconds=0,
    )


@pytest.fixture
def preferences(tmp_path: Path) -> AppPreferences:
    return AppPreferences(tmp_path / "preferences.json")


@pytest.fixture
def configured_preferences(preferences: AppPreferences) -> AppPreferences:
    preferences.update(
        server_url=SERVER_URL,
        jwt_token=CACHED_TOKEN,
        email=TEST_EMAIL,
        password=TEST_PASSWORD,
    )
    return preferences


@pytest.fixture
def sync_log(tmp_path: Path) -> SyncLogRepository:
    return SyncLogRepository(tmp_path / "sync_logs.jsonl")


@pytest.fixture
def health_source() -> InMemorySource:
    """Two days of data: yesterday (TEST_DATE) and today."""
    return InMemorySource({
        RecordType.STEPS: [
            steps(TEST_DATE, 8000, SAMSUNG_HEALTH),
            steps(TEST_DATE, 7800, ANDROID_PLATFORM, hour=12),
            steps(TODAY, 3000, ANDROID_PLATFORM, hour=9),
            steps(TODAY, 4000, GOOGLE_FIT),
        ],
        RecordType.EXERCISE_SESSION: [
            exercise(TEST_DATE, 7, 45, record_id="run-1", title="Morning run"),
        ],
        RecordType.TOTAL_CALORIES: [calories(TEST_DATE, 350.0)],
        RecordType.SLEEP_SESSION: [
            sleep(
                at(TEST_DATE, 23),
                at(TODAY, 7),
                stages=(RawSleepStage(4, at(TEST_DATE, 23), at(TODAY, 3)),),
            ),
        ],
    })


@pytest.fixture
def reader(health_source: InMemorySource) -> HealthReader:
    reconciler = SourceReconciler(config=load_sources_config(), zone=TEST_ZONE)
    return HealthReader(health_source, reconciler=reconciler, zone=TEST_ZONE)


@pytest.fixture
def orchestrator(
    reader: HealthReader,
    configured_preferences: AppPreferences,
    sync_log: SyncLogRepository,
    backend_factory,
    settings: Settings,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        reader,
        configured_preferences,
        sync_log,
        backend_factory=backend_factory,
        settings=settings,
        zone=TEST_ZONE,
        clock=lambda: FIXED_NOW,
    )
