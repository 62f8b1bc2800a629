"""
Tests for the automation runner and result aggregation.
"""

from dataclasses import replace
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from core.exceptions import NotificationError
from core.site_profile import GRUBHUB
from models.order import ItemSelection, OrderBatch
from services.runner import RUN_ABORTED, AutomationRunner, ResultAggregator, run_automation

from conftest import FakeSurface, participant


@pytest.fixture
def batches():
    return [
        OrderBatch.of("Pizza Palace", [participant("a", "cheese pizza"), participant("b", "pepperoni")]),
        OrderBatch.of("Sushi Spot", [participant("c", "salmon roll")]),
        OrderBatch.of("Thai Garden", [participant("c", "pad thai"), participant("d", is_donor=True)]),
    ]


@pytest.fixture
def actual_config(automation_config):
    return replace(automation_config, dry_run=False)


def make_runner(surface, config, users, callee_selector, **kwargs):
    return AutomationRunner(surface, config, users, callee_selector=callee_selector, **kwargs)


class TestResultAggregator:

    def test_finish_fills_unreached_batches(self, batches):
        aggregator = ResultAggregator("run-1", dry_run=True)

        run = aggregator.finish(batches, aborted_reason="browser died")

        assert len(run) == 3
        assert [r.restaurant for r in run.results] == ["Pizza Palace", "Sushi Spot", "Thai Garden"]
        assert all(r.reasons == (RUN_ABORTED,) for r in run.results)
        assert run.results[2].participants == ("c",)
        assert run.aborted_reason == "browser died"


class TestAutomationRunner:

    def test_one_result_per_batch_in_order(self, surface, automation_config, users, callee_selector, batches):
        run = make_runner(surface, automation_config, users, callee_selector).run(batches)

        assert [r.restaurant for r in run.results] == ["Pizza Palace", "Sushi Spot", "Thai Garden"]
        assert [r.successful for r in run.results] == [True, False, True]
        assert run.dry_run
        assert run.aborted_reason is None

    def test_pause_after_every_batch(self, surface, automation_config, users, callee_selector, batches):
        config = replace(automation_config, inter_batch_pause_ms=5000)

        make_runner(surface, config, users, callee_selector).run(batches)

        assert surface.pauses.count(5000) == 3

    def test_failed_batch_leaves_no_cart_for_the_next(self, surface, automation_config, users, callee_selector):
        surface.minimum = Decimal("20")
        batches = [
            OrderBatch.of("Pizza Palace", [participant("a", "cheese pizza")]),
            OrderBatch.of("Thai Garden", [participant("b", "green curry", "pad thai")]),
        ]

        run = make_runner(surface, automation_config, users, callee_selector).run(batches)

        assert not run.results[0].successful
        assert run.results[1].successful
        assert run.results[1].order_amounts == {"b": Decimal("24.50")}

    def test_retryable_failure_is_retried(self, surface, automation_config, users, callee_selector, batches):
        surface.fail("wait_for", GRUBHUB.search_results, times=1)

        run = make_runner(surface, automation_config, users, callee_selector).run(batches[:1])

        assert run.results[0].successful
        assert run.results[0].attempts == 2

    def test_callee_is_a_non_donor_participant(self, surface, automation_config, users, batches):
        run = AutomationRunner(surface, automation_config, users).run(batches)

        for result in run.successes:
            assert result.callee_identity in result.participants
        assert run.results[2].callee_identity == "c"

    def test_dry_run_records_nothing(self, surface, automation_config, users, callee_selector, batches, stats):
        order_source = MagicMock()

        make_runner(
            surface, automation_config, users, callee_selector, stats=stats, order_source=order_source
        ).run(batches)

        assert stats.records == []
        order_source.set_callee.assert_not_called()
        assert surface.submitted == 0

    def test_actual_run_records_non_donors(self, surface, actual_config, users, callee_selector, batches, stats):
        order_source = MagicMock()

        make_runner(
            surface, actual_config, users, callee_selector, stats=stats, order_source=order_source
        ).run(batches[2:])

        assert stats.records == [
            ("c", "Thai Garden", Decimal("11.50"), (ItemSelection("pad thai"),), True),
        ]
        order_source.set_callee.assert_called_once_with("c")
        assert surface.submitted == 1

    def test_stats_error_does_not_fail_the_order(self, surface, actual_config, users, callee_selector, batches):
        stats = MagicMock()
        stats.record.side_effect = OSError("disk full")

        run = make_runner(surface, actual_config, users, callee_selector, stats=stats).run(batches[:1])

        assert run.all_successful
        assert stats.record.call_count == 2

    def test_publishes_once(self, surface, automation_config, users, callee_selector, batches, notifier):
        run = make_runner(surface, automation_config, users, callee_selector, notifier=notifier).run(batches)

        assert notifier.published == [run]

    def test_notification_error_is_not_raised(self, surface, automation_config, users, callee_selector, batches):
        notifier = MagicMock()
        notifier.publish.side_effect = NotificationError("Slack is down")

        run = make_runner(surface, automation_config, users, callee_selector, notifier=notifier).run(batches)

        assert len(run) == 3

    def test_logs_in_before_first_batch(self, surface, automation_config, users, callee_selector, batches):
        make_runner(
            surface, automation_config, users, callee_selector, credentials=("orders@example.com", "secret")
        ).run(batches[:1])

        assert surface.logged_in
        assert surface.visits[0] == GRUBHUB.login_url

    def test_login_failure_gives_partial_result(self, surface, automation_config, users, callee_selector,
                                                batches, notifier):
        surface.fail("navigate", GRUBHUB.login_url)

        run = make_runner(
            surface, automation_config, users, callee_selector,
            notifier=notifier, credentials=("orders@example.com", "secret"),
        ).run(batches)

        assert len(run) == 3
        assert not any(r.successful for r in run.results)
        assert "Timed out" in run.aborted_reason
        assert notifier.published == [run]

    def test_crash_between_batches_keeps_finished_results(self, automation_config, users, callee_selector,
                                                          batches, surface):
        class CrashingSurface(FakeSurface):
            def pause(self, ms):
                if ms == 5000:
                    raise RuntimeError("browser disconnected")
                super().pause(ms)

        crashing = CrashingSurface(surface.menus, surface.options)
        config = replace(automation_config, inter_batch_pause_ms=5000)

        run = make_runner(crashing, config, users, callee_selector).run(batches)

        assert run.results[0].successful
        assert run.results[1].reasons == (RUN_ABORTED,)
        assert run.results[2].reasons == (RUN_ABORTED,)
        assert run.aborted_reason == "browser disconnected"

    def test_empty_run(self, surface, automation_config, users, notifier):
        run = run_automation([], automation_config, surface, users, notifier=notifier)

        assert len(run) == 0
        assert notifier.published == [run]
        assert surface.visits == []
