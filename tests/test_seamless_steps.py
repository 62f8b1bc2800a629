"""
Tests for the Seamless checkout steps, run against FakeSeamlessSurface.
"""

import logging
from dataclasses import replace
from decimal import Decimal

import pytest

from core.site_profile import SEAMLESS
from models.order import OrderBatch
from models.outcome import Continue, OutcomeKind, PipelineResult
from modules.budget import BudgetValidator
from services.pipeline import StepPipeline
from services.runner import AutomationRunner
from services.seamless_steps import (
    configure_restaurant,
    fill_items,
    fill_participants,
    order_time_label,
    select_callee,
)
from services.steps import MINIMUM_NOT_MET, RESTAURANT_NOT_FOUND, StepContext, reset_session

from conftest import participant


@pytest.fixture
def context(seamless_surface, automation_config, users, callee_selector):
    return StepContext(
        surface=seamless_surface,
        site=SEAMLESS,
        config=automation_config,
        users=users,
        budget=BudgetValidator(automation_config.per_person_ceiling),
        callee_selector=callee_selector,
        logger=logging.getLogger("test.seamless"),
    )


class TestOrderTimeLabel:

    def test_labels(self):
        assert order_time_label(1730) == "5:30 PM"
        assert order_time_label(1200) == "12:00 PM"
        assert order_time_label(5) == "12:05 AM"
        assert order_time_label(945) == "9:45 AM"


class TestEndToEnd:

    def test_twelve_dollar_order_succeeds(self, context, pizza_batch, seamless_surface):
        outcome = StepPipeline(context).run(pizza_batch)

        assert outcome.kind is OutcomeKind.CONTINUE
        result = outcome.value
        assert result.restaurant_label == "Pizza Palace"
        assert result.filled_items.order_amounts == {"a": Decimal("12.00")}
        assert result.allocations == {"a": Decimal("12.00")}
        assert result.callee.identity == "a"
        assert result.submission.dry_run
        assert seamless_surface.selected[SEAMLESS.time_select] == "5:30 PM"
        assert seamless_surface.names == ["Alice Adams"]
        assert seamless_surface.filled[SEAMLESS.phone_input] == "555-0101"
        assert seamless_surface.submitted == 0

    def test_thirty_dollar_order_exceeds_budget(self, context, seamless_surface):
        batch = OrderBatch.of("Pizza Palace", [participant("a", "family feast")])

        outcome = StepPipeline(context).run(batch)

        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.reasons == (
            "Order exceeded budget by $5.00. Alice Adams's order is the highest at $30.00.",
        )

    def test_runner_places_order_on_seamless(self, seamless_surface, automation_config, users,
                                             callee_selector, pizza_batch):
        config = replace(automation_config, dry_run=False)

        run = AutomationRunner(
            seamless_surface, config, users, site=SEAMLESS,
            callee_selector=callee_selector, credentials=("orders@example.com", "secret"),
        ).run([pizza_batch])

        assert run.results[0].successful
        assert seamless_surface.logged_in
        assert seamless_surface.filled[SEAMLESS.login_email] == "orders@example.com"
        assert seamless_surface.submitted == 1


class TestConfigureRestaurant:

    def test_unknown_restaurant_is_fatal(self, context):
        batch = OrderBatch.of("Sushi Spot", [participant("a", "roll")])

        outcome = configure_restaurant(context, batch, PipelineResult())

        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.reasons == (RESTAURANT_NOT_FOUND,)

    def test_time_not_offered_keeps_going(self, context, pizza_batch, seamless_surface):
        seamless_surface.fail("select_option", SEAMLESS.time_select)

        outcome = configure_restaurant(context, pizza_batch, PipelineResult())

        assert outcome == Continue("Pizza Palace")
        assert SEAMLESS.time_confirm in seamless_surface.clicks

    def test_timeout_is_retryable(self, context, pizza_batch, seamless_surface):
        seamless_surface.fail("read_all", SEAMLESS.restaurant_link)

        outcome = configure_restaurant(context, pizza_batch, PipelineResult())

        assert outcome.kind is OutcomeKind.RETRYABLE


class TestFillItems:

    def test_minimum_not_met_is_fatal(self, context, pizza_batch, seamless_surface):
        seamless_surface.minimum = Decimal("50")
        configure_restaurant(context, pizza_batch, PipelineResult())

        outcome = fill_items(context, pizza_batch, PipelineResult())

        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.reasons == (MINIMUM_NOT_MET,)
        assert SEAMLESS.checkout_button not in seamless_surface.clicks

    def test_options_are_clicked(self, context, seamless_surface):
        batch = OrderBatch.of("Pizza Palace", [participant("a", ("cheese pizza", ["large"]))])
        configure_restaurant(context, batch, PipelineResult())

        outcome = fill_items(context, batch, PipelineResult())

        assert outcome.value.order_amounts == {"a": Decimal("12.00")}
        assert seamless_surface.cart == [("Cheese Pizza", Decimal("12.00"), ("Large",))]
        assert seamless_surface.at_checkout


class TestFillParticipants:

    def test_names_from_an_earlier_attempt_are_removed(self, context, seamless_surface):
        batch = OrderBatch.of("Pizza Palace", [participant("a", "cheese pizza"), participant("b", "cheese pizza")])
        seamless_surface.names = ["Old Attempt", "Alice Adams"]
        seamless_surface.cart = [("Cheese Pizza", Decimal("12.00"), ()), ("Cheese Pizza", Decimal("12.00"), ())]

        outcome = fill_participants(context, batch, PipelineResult())

        assert seamless_surface.names == ["Alice Adams", "Bob Brown"]
        assert outcome.value == {"a": Decimal("12.00"), "b": Decimal("12.00")}

    def test_account_holder_is_not_entered(self, context, seamless_surface, automation_config):
        context.config = replace(automation_config, account_name="Alice Adams")
        batch = OrderBatch.of("Pizza Palace", [participant("a", "cheese pizza"), participant("b", "cheese pizza")])

        outcome = fill_participants(context, batch, PipelineResult())

        assert seamless_surface.names == ["Bob Brown"]
        assert list(outcome.value) == ["b"]

    def test_over_ceiling_is_fatal(self, context, seamless_surface):
        batch = OrderBatch.of("Pizza Palace", [participant("a", "family feast")])
        seamless_surface.allocation_amounts = [Decimal("30.00")]

        outcome = fill_participants(context, batch, PipelineResult())

        assert outcome.kind is OutcomeKind.FATAL
        assert "exceeded budget by $5.00" in outcome.reasons[0]


class TestSelectCallee:

    def test_enters_phone_number(self, context, seamless_surface):
        batch = OrderBatch.of("Pizza Palace", [participant("d", is_donor=True), participant("b", "cheese pizza")])

        outcome = select_callee(context, batch, PipelineResult())

        assert outcome.value.identity == "b"
        assert seamless_surface.filled[SEAMLESS.phone_input] == "555-0102"
        assert SEAMLESS.green_option in seamless_surface.clicks


class TestSession:

    def test_reset_only_navigates(self, context, seamless_surface):
        reset_session(context)

        assert seamless_surface.visits == [SEAMLESS.order_url]
