"""
Checkout steps for the Seamless corporate ordering website.

Same stages and failure classification as the grubhub steps, over a
different checkout:

    1. configure_restaurant - time on the meals page, pick from the restaurant list
    2. fill_items           - add items from the menu page, find-food button for minimum
    3. fill_participants    - clear old names, add first/last names, budget check
    4. select_callee        - callee's phone number and the eco-friendly option

Submission, login and session reset are shared with the grubhub flow.
"""

from __future__ import annotations

from typing import List

from core.exceptions import SurfaceError, UserNotFoundError
from models.order import OrderBatch, User
from models.outcome import Continue, FatalFailure, FilledItems, PipelineResult, RetryableFailure, StepOutcome
from modules.fuzzy_matcher import NOT_FOUND
from modules.money import parse_money
from .steps import (
    MINIMUM_NOT_MET,
    RESTAURANT_NOT_FOUND,
    StepContext,
    check_budget,
    choose_callee,
    cost_split_entries,
    fill_cart,
    find_candidate,
    unregistered,
)


def order_time_label(order_time: int) -> str:
    """Delivery-time option label for ``order_time`` (HHMM), e.g. 1730 -> "5:30 PM"."""
    hours, minutes = divmod(order_time, 100)
    suffix = "AM" if hours < 12 else "PM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"


def configure_restaurant(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Choose the delivery time on the meals page, then open the restaurant.

    Result slice: the restaurant name as the website displays it.
    """
    surface, site = ctx.surface, ctx.site
    try:
        surface.navigate(site.order_url)
        try:
            surface.select_option(site.time_select, order_time_label(ctx.config.order_time))
        except SurfaceError as e:
            # Not offered (e.g. too late today); the page keeps its earliest time
            ctx.logger.warning(f"Could not choose delivery time {order_time_label(ctx.config.order_time)}: {e}")
        surface.click(site.time_confirm)
        surface.wait_for_load()

        found = find_candidate(surface.read_all(site.restaurant_link), batch.restaurant)
        if found is NOT_FOUND:
            ctx.logger.warning(f"No listed restaurant contains '{batch.restaurant}'")
            return FatalFailure.because(RESTAURANT_NOT_FOUND)

        surface.click(found.handle)
        surface.wait_for_load()
    except SurfaceError as e:
        ctx.logger.warning(f"Restaurant setup failed: {e}")
        return RetryableFailure.because(e.message)

    ctx.logger.info(f"Restaurant selected: {found.display_text}")
    return Continue(found.display_text)


def fill_items(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Add every participant's items to the cart and continue to checkout.

    The continue button only renders once the delivery minimum is met.

    Result slice: FilledItems.
    """
    surface, site = ctx.surface, ctx.site

    try:
        order_amounts, warnings = fill_cart(
            ctx, batch, opened=lambda: surface.pause(1500), added=lambda: surface.pause(2000)
        )
        surface.pause(2000)
        minimum_met = surface.exists(site.checkout_button)
    except SurfaceError as e:
        ctx.logger.warning(f"Filling items failed: {e}")
        return RetryableFailure.because(e.message)

    if not minimum_met:
        return FatalFailure.because(MINIMUM_NOT_MET)

    try:
        surface.click(site.checkout_button)
        surface.wait_for_load()
    except SurfaceError as e:
        return RetryableFailure.because(e.message)

    return Continue(FilledItems(order_amounts=order_amounts, warnings=tuple(warnings)))


def fill_participants(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Split the cost: remove names left from an earlier attempt, add every
    participant by first and last name, then check the allocations.

    Result slice: allocations keyed by identity, in entry order.
    """
    surface, site = ctx.surface, ctx.site
    entered: List[str] = []

    try:
        entries = cost_split_entries(ctx, batch)

        removed = 0
        while surface.exists(site.allocation_delete) and removed < 100:
            surface.click(site.allocation_delete)
            surface.wait_for_load()
            removed += 1
        if removed:
            ctx.logger.info(f"Removed {removed} name(s) left in the cost split")

        for participant, user in entries:
            first_name, _, last_name = user.display_name.strip().partition(" ")

            surface.run_script(site.add_participant_script)
            surface.pause(1000)
            surface.click(site.first_name_input)
            surface.type_text(first_name)
            surface.click(site.last_name_input)
            surface.type_text(last_name.strip())
            surface.click(site.add_participant_submit)
            surface.wait_for_load()
            entered.append(participant.identity)

        amounts = [parse_money(value) for value in surface.read_values(site.allocation_amount)]
    except UserNotFoundError as e:
        return FatalFailure.because(unregistered(e.identity))
    except SurfaceError as e:
        ctx.logger.warning(f"Entering participants failed: {e}")
        return RetryableFailure.because(e.message)
    except ValueError as e:
        return RetryableFailure.because(f"Could not read allocations: {e}")

    if len(amounts) < len(entered):
        return RetryableFailure.because("Allocations were not shown for every participant.")

    return check_budget(ctx, dict(zip(entered, amounts)))


def select_callee(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Pick the callee and enter their phone number.

    Result slice: the callee's User record.
    """
    surface, site = ctx.surface, ctx.site
    user = choose_callee(ctx, batch)
    if not isinstance(user, User):
        return user

    try:
        surface.fill(site.phone_input, user.phone)
        if surface.exists(site.green_option):
            surface.click(site.green_option)
    except SurfaceError as e:
        ctx.logger.warning(f"Entering delivery contact failed: {e}")
        return RetryableFailure.because(e.message)

    ctx.logger.info(f"Callee is {user.identity}")
    return Continue(user)
