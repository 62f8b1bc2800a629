"""
Tests for background runs and the run result store.
"""

import json
import threading
from contextlib import contextmanager

import pytest

from config import TestingConfig, config_to_dict
from core.exceptions import ConfigurationError, RunInProgressError
from models.batch_result import RunResult
from services.automation_service import AutomationService, RunResultStore, create_collaborators

from conftest import RecordingNotifier


@pytest.fixture
def app_config(tmp_path):
    (tmp_path / "users.json").write_text(json.dumps({
        "a": {"name": "Alice Adams", "phone": "555-0101"},
    }))
    (tmp_path / "orders.json").write_text(json.dumps([
        {"identity": "a", "restaurant": "Pizza Palace", "items": [["cheese pizza", []]]},
    ]))
    config = config_to_dict(TestingConfig)
    config.update({
        "DATA_DIR": str(tmp_path),
        "CONFIRMATIONS_DIR": str(tmp_path / "confirmations"),
        "ORDERING_USERNAME": "orders@example.com",
        "ORDERING_PASSWORD": "secret",
        "SLACK_WEBHOOK_URL": "",
        "DRY_RUN": True,
    })
    return config


@pytest.fixture
def service(app_config, surface):
    @contextmanager
    def factory():
        yield surface

    collaborators = create_collaborators(app_config)
    service = AutomationService(
        app_config,
        order_source=collaborators["order_source"],
        users=collaborators["users"],
        stats=collaborators["stats"],
        notifier=RecordingNotifier(),
        surface_factory=factory,
    )
    yield service
    service.shutdown()


class TestRunResultStore:

    def test_put_get_pop(self):
        store = RunResultStore()
        result = RunResult(run_id="run-1", dry_run=True)

        store.put_result(result)

        assert store.get_result("run-1") is result
        assert store.get_result("run-1") is result
        assert store.pop_result("run-1") is result
        assert store.get_result("run-1") is None

    def test_clear(self):
        store = RunResultStore()
        store.put_result(RunResult(run_id="run-1", dry_run=True))

        assert store.clear() == 1

    def test_oldest_results_are_dropped_when_full(self):
        store = RunResultStore(max_results=2)
        for run_id in ("run-1", "run-2", "run-3"):
            store.put_result(RunResult(run_id=run_id, dry_run=True))

        assert len(store) == 2
        assert store.get_result("run-1") is None
        assert store.get_result("run-2") is not None
        assert store.get_result("run-3") is not None

    def test_service_store_uses_configured_size(self, app_config):
        app_config["MAX_STORED_RUNS"] = 3
        service = AutomationService(app_config, order_source=None, users=None)

        assert service.result_store.max_results == 3


class TestAutomationService:

    def test_run_in_background(self, service, surface):
        run_id = service.start_run(dry_run=True)
        service.shutdown(timeout_per_thread=10)

        result = service.get_result(run_id)
        assert result is not None
        assert result.run_id == run_id
        assert [r.restaurant for r in result.results] == ["Pizza Palace"]
        assert result.results[0].successful
        assert surface.logged_in
        assert not service.is_run_pending(run_id)

    def test_missing_credentials(self, app_config, surface):
        app_config["ORDERING_PASSWORD"] = ""
        service = AutomationService(app_config, order_source=None, users=None)

        with pytest.raises(ConfigurationError):
            service.start_run()

    def test_one_run_at_a_time(self, app_config, surface):
        release = threading.Event()

        @contextmanager
        def blocking_factory():
            release.wait(10)
            yield surface

        collaborators = create_collaborators(app_config)
        service = AutomationService(
            app_config, collaborators["order_source"], collaborators["users"], surface_factory=blocking_factory
        )

        first = service.start_run()
        try:
            with pytest.raises(RunInProgressError) as exc_info:
                service.start_run()
            assert exc_info.value.run_id == first
        finally:
            release.set()
            service.shutdown(timeout_per_thread=10)

    def test_browser_failure_gives_aborted_result(self, app_config):
        @contextmanager
        def broken_factory():
            raise RuntimeError("chromium not installed")
            yield

        collaborators = create_collaborators(app_config)
        notifier = RecordingNotifier()
        service = AutomationService(
            app_config, collaborators["order_source"], collaborators["users"],
            notifier=notifier, surface_factory=broken_factory,
        )

        run_id = service.start_run()
        service.shutdown(timeout_per_thread=10)

        result = service.get_result(run_id)
        assert result.aborted_reason == "chromium not installed"
        assert len(result) == 1
        assert not result.results[0].successful
        assert notifier.published == [result]

    def test_browser_close_failure_keeps_finished_result(self, app_config, surface):
        @contextmanager
        def factory_failing_on_close():
            yield surface
            raise RuntimeError("browser close failed")

        collaborators = create_collaborators(app_config)
        notifier = RecordingNotifier()
        service = AutomationService(
            app_config, collaborators["order_source"], collaborators["users"],
            notifier=notifier, surface_factory=factory_failing_on_close,
        )

        run_id = service.start_run()
        service.shutdown(timeout_per_thread=10)

        result = service.get_result(run_id)
        assert result.aborted_reason is None
        assert [r.successful for r in result.results] == [True]
        assert notifier.published == [result]
