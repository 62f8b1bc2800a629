"""
Ordering website profiles: URLs and CSS selectors.

The pipeline steps never hard-code selectors; they read them from a
SiteProfile so a markup change on the ordering website is a one-file fix.

Two websites are supported. Their checkouts differ in more than markup
(autocomplete search vs. a restaurant list, autocomplete names vs. first
and last name forms), so each profile also names the checkout ``flow``
whose steps drive it:

    GRUBHUB   flow "grubhub"   (default)
    SEAMLESS  flow "seamless"

Selectors a flow does not use are left empty.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SiteProfile:
    """URLs and selectors for one food-delivery website."""

    name: str
    flow: str

    # URLs
    login_url: str
    order_url: str

    # Login form
    login_email: str
    login_password: str
    login_submit: str

    # Final submission
    submit_order: str

    # Delivery time
    time_button: str = ""
    time_dialog: str = ""
    time_select: str = ""
    time_confirm: str = ""

    # Restaurant search (grubhub) or restaurant list (seamless)
    search_open: str = ""
    search_input: str = ""
    search_results: str = ""
    search_result: str = ""
    restaurant_link: str = ""

    # Menu and item dialog
    menu_item: str = ""
    menu_item_name: str = ""
    item_dialog: str = ""
    item_option: str = ""
    item_add: str = ""
    cart_subtotal: str = ""
    cart_item_remove: str = ""
    checkout_button: str = ""

    # Cost split by autocomplete (grubhub)
    allocation_toggle: str = ""
    allocation_input: str = ""
    allocation_suggestion: str = ""
    own_allocation_edit: str = ""
    own_allocation_input: str = ""

    # Cost split by name form (seamless)
    allocation_delete: str = ""
    add_participant_script: str = ""
    first_name_input: str = ""
    last_name_input: str = ""
    add_participant_submit: str = ""

    # Allocated amounts, one element per cost-split row
    allocation_amount: str = ""

    # Delivery contact
    instructions_toggle: str = ""
    instructions_toggle_icon: str = ""
    instructions_input: str = ""
    phone_input: str = ""
    green_option: str = ""


GRUBHUB = SiteProfile(
    name="grubhub",
    flow="grubhub",
    login_url="https://www.grubhub.com/login",
    order_url="https://www.grubhub.com/lets-eat",
    login_email='input[name="email"]',
    login_password='input[name="password"]',
    login_submit="form.signInForm button",
    submit_order="button#ghs-checkout-review-fixed",
    time_button="div.whenForSelector-btn",
    time_dialog="section.s-dialog-body",
    time_select="section.s-dialog-body select",
    time_confirm="section.s-dialog-body button",
    search_open="div.startOrder-search-input input",
    search_input="div.navbar-menu-search input",
    search_results="section.search-autocomplete-container div.searchAutocomplete-xsFixed",
    search_result="div.ghs-autocompleteResult-container",
    menu_item="div.menuItem",
    menu_item_name="h6.menuItem-name a",
    item_dialog="div.s-dialog-body",
    item_option="span.menuItemModal-choice-option-description",
    item_add="button.menuItemModal-btnSubmit",
    cart_subtotal="div.lineItems-subtotal span.lineItem-amount",
    cart_item_remove="button.lineItem-remove",
    checkout_button="button#ghs-cart-checkout-button",
    allocation_toggle='label[for="showAllocations"]',
    allocation_input="div.allocations-fields-container > div > input",
    allocation_suggestion="div.allocations-autocomplete-dropdown div.s-row",
    own_allocation_edit="div.allocations-fields-container table tr:last-of-type td.u-text-right button",
    own_allocation_input="div.allocations-fields-container table tr:last-of-type td.u-text-secondary input",
    allocation_amount="div.allocation-saved-cell",
    instructions_toggle='div[at-delivery-instructions-toggle="true"]',
    instructions_toggle_icon='div[at-delivery-instructions-toggle="true"] use',
    instructions_input="textarea#specialInstructions",
    phone_input="input#phoneNumber",
    green_option='label[for="ghs-checkout-green"]',
)

SEAMLESS = SiteProfile(
    name="seamless",
    flow="seamless",
    login_url="https://www.seamless.com/corporate/login/",
    order_url="https://www.seamless.com/meals.m",
    login_email="input#username",
    login_password="input#password",
    login_submit="a#submitLogin",
    submit_order="a.findfoodbutton",
    time_select="#time",
    time_confirm="tr.startorder a",
    restaurant_link='a[name="vendorLocation"]',
    menu_item='a[name="product"]',
    menu_item_name='a[name="product"]',
    item_option="li label",
    item_add="a#a1",
    cart_subtotal="div#OrderTotals table tbody tr:not(.noline):not(.subtotal) td:not(.main)",
    checkout_button="a.findfoodbutton",
    allocation_delete="td.delete a",
    add_participant_script="toggleAddUser(true, true)",
    first_name_input="input#FirstName",
    last_name_input="input#LastName",
    add_participant_submit="tr#AddUser h4.PrimaryLink a",
    allocation_amount="input.allocationAmt",
    phone_input="input#phoneNumber",
    green_option="#ecoToGoTrue",
)

PROFILES = {profile.name: profile for profile in (GRUBHUB, SEAMLESS)}


def get_profile(name: str) -> SiteProfile:
    """Look up a profile by name (case-insensitive)."""
    try:
        return PROFILES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown site profile '{name}'. Available: {', '.join(sorted(PROFILES))}")
