"""
Order pipeline steps.

Each step drives the ordering website through one stage of checkout and
returns a StepOutcome. Steps never let an exception escape for a failure
they understand:

    SurfaceError (timeouts, missing elements)  ->  RetryableFailure
    restaurant not found / closed              ->  FatalFailure
    delivery minimum not met                   ->  FatalFailure
    budget ceiling exceeded                    ->  FatalFailure
    participant not registered                 ->  FatalFailure

Canonical order of the grubhub flow (the seamless flow in seamless_steps
follows the same order with its own steps):
    1. configure_restaurant - delivery time, restaurant search and selection
    2. fill_items           - add every participant's items to the cart
    3. fill_participants    - cost-split names, zero own share, budget check
    4. select_callee        - pick the callee, enter phone and instructions

followed by submit_order, run by the pipeline once every step continued.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from config import AutomationConfig
from core.exceptions import SurfaceError, UserNotFoundError
from core.site_profile import SiteProfile
from core.surface import AutomationSurface, Candidate
from models.order import OrderBatch, ParticipantOrder, User
from models.outcome import (
    Continue,
    FatalFailure,
    FilledItems,
    PipelineResult,
    RetryableFailure,
    StepOutcome,
    Submission,
)
from modules.budget import BudgetValidator, BudgetViolation
from modules.callee import CalleeSelector, NoEligibleCalleeError
from modules.fuzzy_matcher import NOT_FOUND, match
from modules.money import parse_money


UNKNOWN_FAILURE = "Order failed for unknown reason."
RESTAURANT_NOT_FOUND = "Restaurant does not exist or is closed at this time."
MINIMUM_NOT_MET = "Delivery minimum not met."
NO_CALLEE = "No participant can receive the delivery call (everyone is a donor)."

_NOT_ALPHANUMERIC = re.compile(r"[\W_]+")


@dataclass
class StepContext:
    """
    Everything a step needs besides the batch and the result so far.

    The surface is the run's single browser session. It is passed by
    reference and must not be used by anything else while a batch runs.
    """

    surface: AutomationSurface
    site: SiteProfile
    config: AutomationConfig
    users: Any
    """User directory: ``get_user(identity) -> User``."""

    budget: BudgetValidator
    callee_selector: CalleeSelector
    logger: logging.Logger


# =============================================================================
# HELPERS
# =============================================================================

def confirmation_filename(restaurant: str) -> str:
    """File-system friendly confirmation name, e.g. "Joe's Pizza" -> "joe_s_pizza.pdf"."""
    slug = _NOT_ALPHANUMERIC.sub("_", restaurant).strip("_").lower() or "order"
    return f"{slug}.pdf"


def delivery_time_value(order_time: int, now: Optional[datetime] = None) -> str:
    """
    Value of the delivery-time <select> option for today at ``order_time`` (HHMM).

    The website keys its options by UTC ISO timestamp with milliseconds,
    e.g. "2026-10-19T21:30:00.000Z" for 17:30 in New York.
    """
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    hours, minutes = divmod(order_time, 100)
    local = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    return local.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def find_candidate(candidates: Iterable[Candidate], query: str):
    """Fuzzy-match and return the whole Candidate (or NOT_FOUND)."""
    return match(((c.display_text, c) for c in candidates), query)


def _read_subtotal(surface: AutomationSurface, site: SiteProfile) -> Decimal:
    # An empty cart renders no subtotal line
    if not surface.exists(site.cart_subtotal):
        return Decimal("0.00")
    text = surface.read_text(site.cart_subtotal)
    try:
        return parse_money(text)
    except ValueError:
        raise SurfaceError(f"Could not read cart subtotal from {text!r}", action="read subtotal")


def is_account_holder(ctx: StepContext, user: User) -> bool:
    """True if ``user`` is the ordering account's own holder."""
    account_name = ctx.config.account_name
    return bool(account_name) and user.display_name.strip().lower() == account_name.strip().lower()


def cost_split_entries(ctx: StepContext, batch: OrderBatch) -> List[Tuple[ParticipantOrder, User]]:
    """
    Participants to enter in the cost split, with their User records.

    The account holder is left out: the website already lists them and
    never offers their own name. Raises UserNotFoundError.
    """
    entries = []
    for participant in batch.participants:
        user = ctx.users.get_user(participant.identity)
        if is_account_holder(ctx, user):
            ctx.logger.debug(f"{participant.identity} holds the ordering account, not entered in the cost split")
            continue
        entries.append((participant, user))
    return entries


def fill_cart(
    ctx: StepContext,
    batch: OrderBatch,
    opened: Callable[[], None],
    added: Callable[[], None],
) -> Tuple[Dict[str, Decimal], List[str]]:
    """
    Add every participant's items, with their options, to the cart.

    ``opened`` waits for an item's options after it was clicked and
    ``added`` waits for the cart to update after it was added.

    Returns:
        (order amounts by identity, warnings for skipped items and options)

    Raises:
        SurfaceError: On any failed interaction
    """
    surface, site = ctx.surface, ctx.site
    order_amounts: Dict[str, Decimal] = {}
    warnings: List[str] = []

    for participant in batch.participants:
        total_before = _read_subtotal(surface, site)

        for item in participant.items:
            found = find_candidate(surface.read_all(site.menu_item_name), item.item_name)
            if found is NOT_FOUND:
                ctx.logger.warning(f"Item '{item.item_name}' not on the menu, skipped")
                warnings.append(f'Could not find "{item.item_name}" for {participant.identity}; it was not ordered.')
                continue

            surface.click(found.handle)
            opened()

            option_candidates = surface.read_all(site.item_option)
            for option in sorted(item.options):
                chosen = find_candidate(option_candidates, option)
                if chosen is NOT_FOUND:
                    ctx.logger.warning(f"Option '{option}' not offered for '{found.display_text}', skipped")
                    warnings.append(f'Could not find option "{option}" for "{item.item_name}" ({participant.identity}).')
                    continue
                surface.click(chosen.handle)

            surface.click(site.item_add)
            added()
            ctx.logger.debug(f"Added '{found.display_text}' for {participant.identity}")

        order_amounts[participant.identity] = _read_subtotal(surface, site) - total_before

    return order_amounts, warnings


def check_budget(ctx: StepContext, allocations: Dict[str, Decimal]) -> StepOutcome:
    """Continue with ``allocations`` if nobody is over the ceiling, else FatalFailure."""
    check = ctx.budget.validate(allocations)
    if isinstance(check, BudgetViolation):
        try:
            name = ctx.users.get_user(check.offending_participant).display_name
        except UserNotFoundError:
            name = None
        ctx.logger.warning(
            f"Over budget by {check.excess_amount}, highest is {check.offending_participant} at {check.offending_amount}"
        )
        return FatalFailure.because(check.describe(name))
    return Continue(allocations)


def choose_callee(ctx: StepContext, batch: OrderBatch) -> Union[User, StepOutcome]:
    """The callee's User record, or the FatalFailure explaining why there is none."""
    try:
        identity = ctx.callee_selector.select(batch.participants)
        return ctx.users.get_user(identity)
    except NoEligibleCalleeError:
        return FatalFailure.because(NO_CALLEE)
    except UserNotFoundError as e:
        return FatalFailure.because(unregistered(e.identity))


def unregistered(identity: str) -> str:
    return f"{identity} has not registered a name and phone number."


# =============================================================================
# SESSION
# =============================================================================

def log_in(surface: AutomationSurface, site: SiteProfile, username: str, password: str) -> None:
    """
    Log the ordering account in. Raises SurfaceError on failure.

    Done once per run, before the first batch.
    """
    surface.navigate(site.login_url)
    surface.fill(site.login_email, username)
    surface.fill(site.login_password, password)
    surface.click(site.login_submit)
    surface.wait_for_load()


def reset_session(ctx: StepContext) -> None:
    """
    Bring the browser back to a clean starting point.

    Navigates to the ordering page and empties any cart left behind by a
    failed attempt or a failed previous batch. Websites that start a new
    cart for every order (no ``cart_item_remove`` selector) are only
    navigated.
    """
    surface, site = ctx.surface, ctx.site
    surface.navigate(site.order_url)
    if not site.cart_item_remove:
        return
    removed = 0
    while surface.exists(site.cart_item_remove) and removed < 100:
        surface.click(site.cart_item_remove)
        surface.pause(500)
        removed += 1
    if removed:
        ctx.logger.info(f"Removed {removed} leftover cart item(s)")


# =============================================================================
# STEPS
# =============================================================================

def configure_restaurant(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Choose the delivery time, then search for and open the restaurant.

    Result slice: the restaurant name as the website displays it.
    """
    surface, site = ctx.surface, ctx.site
    try:
        surface.navigate(site.order_url)
        surface.pause(1000)

        # Time
        surface.click(site.time_button)
        surface.wait_for(site.time_dialog)
        surface.pause(300)
        surface.select_option(site.time_select, delivery_time_value(ctx.config.order_time))
        surface.pause(500)
        surface.click(site.time_confirm)
        surface.pause(500)

        # Restaurant
        surface.click(site.search_open)
        surface.pause(300)
        surface.click(site.search_input)
        surface.type_text(batch.restaurant)
        surface.wait_for(site.search_results)

        found = find_candidate(surface.read_all(site.search_result), batch.restaurant)
        if found is NOT_FOUND:
            ctx.logger.warning(f"No search result contains '{batch.restaurant}'")
            return FatalFailure.because(RESTAURANT_NOT_FOUND)

        surface.click(found.handle)
        surface.wait_for(site.menu_item)
        surface.pause(1000)
    except SurfaceError as e:
        ctx.logger.warning(f"Restaurant setup failed: {e}")
        return RetryableFailure.because(e.message)

    ctx.logger.info(f"Restaurant selected: {found.display_text}")
    return Continue(found.display_text)


def fill_items(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Add every participant's items, with their options, to the cart.

    Items and options that cannot be found on the menu are skipped and
    reported as warnings. Each participant's amount is the change in cart
    subtotal across their items.

    Result slice: FilledItems.
    """
    surface, site = ctx.surface, ctx.site

    def opened():
        surface.wait_for(site.item_dialog)
        surface.pause(200)

    def added():
        surface.wait_for(site.item_dialog, state="hidden")
        surface.pause(1000)

    try:
        order_amounts, warnings = fill_cart(ctx, batch, opened, added)
        minimum_met = surface.is_enabled(site.checkout_button)
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
    Split the cost: enter every participant, zero the ordering account's
    own share, then check the allocations against the per-person ceiling.

    Donors are entered too; they pay into the batch total. The account
    holder is never entered (see ``cost_split_entries``).

    Result slice: allocations keyed by identity, in entry order.
    """
    surface, site = ctx.surface, ctx.site
    entered: List[str] = []

    try:
        entries = cost_split_entries(ctx, batch)

        surface.wait_for(site.allocation_toggle)
        surface.click(site.allocation_toggle)
        surface.pause(200)

        for participant, user in entries:
            surface.click(site.allocation_input)
            surface.type_text(user.display_name)
            surface.wait_for(site.allocation_suggestion)
            surface.click(site.allocation_suggestion)
            surface.pause(1000)
            entered.append(participant.identity)

        # Clear the ordering account's own allocation
        surface.click(site.own_allocation_edit)
        surface.fill(site.own_allocation_input, "0")
        surface.click(site.own_allocation_edit)
        surface.pause(2000)

        amounts = [parse_money(c.display_text) for c in surface.read_all(site.allocation_amount)]
    except UserNotFoundError as e:
        return FatalFailure.because(unregistered(e.identity))
    except SurfaceError as e:
        ctx.logger.warning(f"Entering participants failed: {e}")
        return RetryableFailure.because(e.message)
    except ValueError as e:
        return RetryableFailure.because(f"Could not read allocations: {e}")

    if len(amounts) < len(entered):
        return RetryableFailure.because("Allocations were not shown for every participant.")

    # The account's own (zeroed) row comes last and is dropped by zip
    return check_budget(ctx, dict(zip(entered, amounts)))


def select_callee(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Pick the callee and enter their phone number and delivery instructions.

    Result slice: the callee's User record.
    """
    surface, site = ctx.surface, ctx.site
    user = choose_callee(ctx, batch)
    if not isinstance(user, User):
        return user

    try:
        if surface.get_attribute(site.instructions_toggle_icon, "href") == "#plus":
            surface.click(site.instructions_toggle)
        surface.fill(
            site.instructions_input,
            f"Please call {user.display_name} at {user.phone} upon delivery / arrival",
        )
        if surface.exists(site.phone_input):
            surface.fill(site.phone_input, user.phone)

        # Eco-friendly order (no utensils or napkins)
        if surface.exists(site.green_option):
            surface.click(site.green_option)
    except SurfaceError as e:
        ctx.logger.warning(f"Entering delivery contact failed: {e}")
        return RetryableFailure.because(e.message)

    ctx.logger.info(f"Callee is {user.identity}")
    return Continue(user)


def submit_order(ctx: StepContext, batch: OrderBatch, result: PipelineResult) -> StepOutcome:
    """
    Place the order and capture the confirmation PDF.

    In a dry run the order is never placed; the filled-in checkout page is
    captured instead. Once the order button has been clicked, a failure is
    fatal: retrying could place the order twice.

    Result slice: Submission.
    """
    surface, site = ctx.surface, ctx.site
    path = Path(ctx.config.confirmations_dir) / confirmation_filename(batch.restaurant)

    if ctx.config.dry_run:
        try:
            surface.save_pdf(path)
        except SurfaceError as e:
            return RetryableFailure.because(e.message)
        ctx.logger.info(f"Simulated order from {batch.restaurant}, confirmation is in {path}")
        return Continue(Submission(confirmation_ref=path.name, dry_run=True))

    try:
        surface.click(site.submit_order)
    except SurfaceError as e:
        return RetryableFailure.because(e.message)

    try:
        surface.wait_for_load()
        surface.save_pdf(path)
    except SurfaceError as e:
        ctx.logger.error(f"Order from {batch.restaurant} submitted but not confirmed: {e}")
        return FatalFailure.because(
            "Order was submitted but no confirmation was captured. Check the ordering account before reordering."
        )

    ctx.logger.info(f"Ordered from {batch.restaurant}, confirmation is in {path}")
    return Continue(Submission(confirmation_ref=path.name, dry_run=False))
