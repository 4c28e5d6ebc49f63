from __future__ import annotations

LEAD_STATUSES = ("new", "contacted", "qualified", "converted", "lost")

LEAD_TRANSITIONS: dict[str, frozenset[str]] = {
    "new": frozenset({"contacted", "qualified", "lost"}),
    "contacted": frozenset({"qualified", "lost"}),
    "qualified": frozenset({"converted", "lost"}),
    "converted": frozenset(),
    "lost": frozenset(),
}

# What a referrer sees for each lead status on their own dashboard.
REFERRER_STATUS_MAP = {
    "new": "new",
    "contacted": "pending",
    "qualified": "pending",
    "converted": "closed",
    "lost": "lost",
}


def can_transition(from_status: str, to_status: str) -> bool:
    if from_status == to_status:
        return True
    return to_status in LEAD_TRANSITIONS.get(from_status, frozenset())


def referrer_facing_status(status: str) -> str:
    return REFERRER_STATUS_MAP.get(status, status)
