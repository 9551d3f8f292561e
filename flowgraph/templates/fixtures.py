# flowgraph/templates/fixtures.py
"""Reference welcome-series documents (raw, unvalidated dicts).

Accessors return deep copies so callers may mutate them freely.
"""

import copy
from typing import Any, Dict


def _email(node_id: str, title: str, step: int) -> Dict[str, Any]:
    return {"id": node_id, "type": "message", "channel": "email", "title": title, "stepIndex": step}


def _wait(node_id: str, value: int = 2, unit: str = "days") -> Dict[str, Any]:
    return {"id": node_id, "type": "wait", "duration": {"value": value, "unit": unit}}


# 14 nodes: two splits, one merge point (wait_2 joins both branches)
_WELCOME_SERIES: Dict[str, Any] = {
    "id": "welcome-series-email-5",
    "name": "Welcome Series",
    "source": {"mode": "manual"},
    "channels": ["email"],
    "defaults": {"delay": {"value": 2, "unit": "days"}},
    "nodes": [
        {
            "id": "trigger_signup",
            "type": "trigger",
            "title": "Trigger",
            "event": "When user is added to newsletter list",
        },
        _email("email_1", "Email 1", 1),
        _wait("wait_1"),
        _email("email_2", "Email 2", 2),
        {
            "id": "split_engaged",
            "type": "split",
            "title": "Conditional Split",
            "condition": "Has engaged with Email 2",
            "labels": {"yes": "Yes", "no": "No"},
        },
        _email("email_3_engaged", "Email 3 (Engaged)", 3),
        _email("email_3_non_engaged", "Email 3 (Non-Engaged)", 3),
        _wait("wait_2"),
        _email("email_4", "Email 4", 4),
        _wait("wait_3"),
        _email("email_5", "Email 5", 5),
        {
            "id": "split_final",
            "type": "split",
            "title": "Conditional Split",
            "condition": "Has clicked in any welcome email",
        },
        {"id": "outcome_yes", "type": "outcome", "title": "Outcome", "result": "Engaged path completed"},
        {"id": "outcome_no", "type": "outcome", "title": "Outcome", "result": "Non-engaged path completed"},
    ],
    "edges": [
        {"id": "e1", "from": "trigger_signup", "to": "email_1"},
        {"id": "e2", "from": "email_1", "to": "wait_1"},
        {"id": "e3", "from": "wait_1", "to": "email_2"},
        {"id": "e4", "from": "email_2", "to": "split_engaged"},
        {"id": "e5_yes", "from": "split_engaged", "to": "email_3_engaged", "label": "Yes"},
        {"id": "e6_no", "from": "split_engaged", "to": "email_3_non_engaged", "label": "No"},
        {"id": "e7", "from": "email_3_engaged", "to": "wait_2"},
        {"id": "e8", "from": "email_3_non_engaged", "to": "wait_2"},
        {"id": "e9", "from": "wait_2", "to": "email_4"},
        {"id": "e10", "from": "email_4", "to": "wait_3"},
        {"id": "e11", "from": "wait_3", "to": "email_5"},
        {"id": "e12", "from": "email_5", "to": "split_final"},
        {"id": "e13_yes", "from": "split_final", "to": "outcome_yes", "label": "Yes"},
        {"id": "e14_no", "from": "split_final", "to": "outcome_no", "label": "No"},
    ],
}


def _rich_message(node_id, channel, title, step, copy_hint, focus, notes, discount=None,
                  smart_sending=True, filter_conditions="NA", strategy=None):
    node = {
        "id": node_id,
        "type": "message",
        "channel": channel,
        "title": title,
        "stepIndex": step,
        "copyHint": copy_hint,
        "discountCode": {"included": True, "description": discount} if discount else {"included": False},
        "messagingFocus": focus,
        "smartSending": smart_sending,
        "utmLinks": True,
        "filterConditions": filter_conditions,
        "implementationNotes": notes,
    }
    if strategy:
        node["strategy"] = {"primaryFocus": strategy[0], "secondaryFocus": strategy[1]}
    return node


# Email + SMS series split on first purchase; 16 nodes, 15 edges
_PURCHASE_WELCOME_SERIES: Dict[str, Any] = {
    "id": "welcome-series-purchase",
    "name": "Welcome Series",
    "source": {"mode": "manual"},
    "channels": ["email", "sms"],
    "defaults": {"delay": {"value": 2, "unit": "days"}},
    "nodes": [
        {
            "id": "trigger_signup",
            "type": "trigger",
            "title": "Trigger",
            "event": "When someone subscribes to the email list",
        },
        _rich_message(
            "email_welcome", "email", "Welcome to the Brand!", 1,
            "Thank the subscriber for joining. Introduce brand story and what to expect.",
            "Introduction & Engagement",
            "Immediate send upon signup. Disable smart sending so every new subscriber receives this.",
            smart_sending=False,
            strategy=(
                "Create a strong first impression and set expectations for the email series.",
                "Introduce the brand story and core values to build an emotional connection.",
            ),
        ),
        _wait("wait_1", 1),
        _rich_message(
            "email_brand_story", "email", "Our Story & What We Stand For", 2,
            "Share the brand origin story, mission, and what makes the products unique.",
            "Service Highlights & Value Proposition",
            "Highlight unique selling points. Link to an About Us or brand story page.",
        ),
        _wait("wait_2"),
        {
            "id": "split_purchased",
            "type": "split",
            "title": "Conditional Split",
            "condition": "Has placed an order?",
            "labels": {"yes": "Yes", "no": "No"},
        },
        _rich_message(
            "email_yes_thankyou", "email", "Thank You For Your Purchase", 3,
            "Express gratitude for their order. Suggest complementary products.",
            "Service Highlights & Value Proposition",
            "Reference their recent purchase. Include dynamic product recommendations.",
            strategy=(
                "Reinforce the purchase decision and reduce buyer's remorse.",
                "Introduce cross-sell opportunities with related products.",
            ),
        ),
        _wait("wait_yes_1"),
        _rich_message(
            "sms_yes_referral", "sms", "Quick Reminder: Refer a Friend", 4,
            "Short text nudge to refer a friend and earn a reward.",
            "Re-engagement & Conversion",
            "Keep it under 160 characters. Include a direct referral link.",
            discount="Include a referral incentive for both parties",
        ),
        {"id": "outcome_yes", "type": "outcome", "title": "End", "result": "Purchaser welcome path completed"},
        _rich_message(
            "email_no_social_proof", "email", "Why Customers Love Us", 3,
            "Showcase customer reviews, testimonials, and social proof.",
            "Re-engagement & Conversion",
            "Feature real customer testimonials and star ratings.",
            strategy=(
                "Build trust through social proof and overcome purchase hesitation.",
                "Showcase best-selling or most-reviewed products to guide first purchase.",
            ),
        ),
        _wait("wait_no_1"),
        _rich_message(
            "email_no_offer", "email", "An Exclusive Offer Just For You", 4,
            "Offer a first-purchase incentive with a clear call-to-action.",
            "Re-engagement & Conversion",
            "Time-limited offer. Include dynamic product block with bestsellers.",
            discount="Include a first-purchase incentive to drive conversion",
        ),
        _wait("wait_no_2", 1),
        _rich_message(
            "sms_no_urgency", "sms", "Last Chance: Offer Expires Today", 5,
            "Short, urgent text reminder that the offer is expiring.",
            "Final Urgency, Stock & Scarcity",
            "SMS drives immediate action. Keep it concise with a direct shop link.",
            discount="Remind of the expiring first-purchase offer",
            filter_conditions="Has not placed order since flow entry",
        ),
        {"id": "outcome_no", "type": "outcome", "title": "End", "result": "Non-purchaser welcome path completed"},
    ],
    "edges": [
        {"id": "e1", "from": "trigger_signup", "to": "email_welcome"},
        {"id": "e2", "from": "email_welcome", "to": "wait_1"},
        {"id": "e3", "from": "wait_1", "to": "email_brand_story"},
        {"id": "e4", "from": "email_brand_story", "to": "wait_2"},
        {"id": "e5", "from": "wait_2", "to": "split_purchased"},
        {"id": "e6_yes", "from": "split_purchased", "to": "email_yes_thankyou", "label": "Yes"},
        {"id": "e7", "from": "email_yes_thankyou", "to": "wait_yes_1"},
        {"id": "e8", "from": "wait_yes_1", "to": "sms_yes_referral"},
        {"id": "e9", "from": "sms_yes_referral", "to": "outcome_yes"},
        {"id": "e6_no", "from": "split_purchased", "to": "email_no_social_proof", "label": "No"},
        {"id": "e10", "from": "email_no_social_proof", "to": "wait_no_1"},
        {"id": "e11", "from": "wait_no_1", "to": "email_no_offer"},
        {"id": "e12", "from": "email_no_offer", "to": "wait_no_2"},
        {"id": "e13", "from": "wait_no_2", "to": "sms_no_urgency"},
        {"id": "e14", "from": "sms_no_urgency", "to": "outcome_no"},
    ],
}

FIXTURES = {
    "welcome-series": _WELCOME_SERIES,
    "purchase-welcome-series": _PURCHASE_WELCOME_SERIES,
}


def welcome_series() -> Dict[str, Any]:
    return copy.deepcopy(_WELCOME_SERIES)


def purchase_welcome_series() -> Dict[str, Any]:
    return copy.deepcopy(_PURCHASE_WELCOME_SERIES)


def fixture(name: str) -> Dict[str, Any]:
    """Deep copy of a named fixture; raises KeyError for unknown names."""
    return copy.deepcopy(FIXTURES[name])
