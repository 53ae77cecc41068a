"""
Lead-to-order matching.

Leads and store orders share no key, so a lead is resolved by trying a fixed
list of strategies in order; the first strategy that finds anything wins.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from schemas import Lead, StoreOrder

POLISH_PREFIX = "+48"

DOMAIN_SWAPS = [
    (".pl", ".com"),
    (".com", ".pl"),
    ("gmail.com", "gmail.pl"),
    ("gmail.pl", "gmail.com"),
    ("wp.pl", "o2.pl"),
    ("o2.pl", "wp.pl"),
]


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def email_username(value: Optional[str]) -> str:
    email = normalize_email(value)
    if "@" not in email:
        return ""
    return email.split("@", 1)[0].strip()


def normalize_phone(value: Optional[str]) -> str:
    if not value:
        return ""
    digits = re.sub(r"[^\d+]", "", value)
    if digits.startswith(POLISH_PREFIX):
        return digits[len(POLISH_PREFIX):]
    if digits.startswith("48") and len(digits) == 11:
        return digits[2:]
    if digits.startswith("0") and len(digits) == 10:
        return digits[1:]
    return digits


def domain_variants(domain: str) -> List[str]:
    variants = [domain]
    for old, new in DOMAIN_SWAPS:
        variants.append(domain.replace(old, new, 1))
    return list(dict.fromkeys(variants))


def pick_closest(lead: Lead, candidates: Sequence[StoreOrder], window_hours: float) -> Optional[StoreOrder]:
    if not candidates:
        return None
    if len(candidates) > 1 and lead.created_at is not None:
        for order in candidates:
            if order.created_at is None:
                continue
            delta_hours = abs((order.created_at - lead.created_at).total_seconds()) / 3600
            if delta_hours <= window_hours:
                return order
    return candidates[0]


class LeadMatcher:
    name = "base"

    def __init__(self, window_hours: float = 48) -> None:
        self.window_hours = window_hours

    def candidates(self, lead: Lead, orders: Sequence[StoreOrder]) -> List[StoreOrder]:
        raise NotImplementedError

    def try_match(self, lead: Lead, orders: Sequence[StoreOrder]) -> Optional[StoreOrder]:
        return pick_closest(lead, self.candidates(lead, orders), self.window_hours)


class EmailMatcher(LeadMatcher):
    name = "email"

    def candidates(self, lead: Lead, orders: Sequence[StoreOrder]) -> List[StoreOrder]:
        return _orders_with_email(normalize_email(lead.email), orders)


class PhoneMatcher(LeadMatcher):
    name = "phone"

    def candidates(self, lead: Lead, orders: Sequence[StoreOrder]) -> List[StoreOrder]:
        wanted = normalize_phone(lead.phone)
        if not wanted:
            return []
        return [
            order
            for order in orders
            if any(
                phone and normalize_phone(phone) == wanted
                for phone in (order.phone, order.billing_phone, order.shipping_phone)
            )
        ]


class PartialEmailMatcher(LeadMatcher):
    name = "partial_email"

    def candidates(self, lead: Lead, orders: Sequence[StoreOrder]) -> List[StoreOrder]:
        username = email_username(lead.email)
        if not username:
            return []
        return [order for order in orders if email_username(order.email) == username]


class FuzzyDomainMatcher(LeadMatcher):
    name = "fuzzy_email"

    def candidates(self, lead: Lead, orders: Sequence[StoreOrder]) -> List[StoreOrder]:
        parts = normalize_email(lead.email).split("@")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return []
        username, domain = parts
        for variant in domain_variants(domain):
            found = _orders_with_email(f"{username}@{variant}", orders)
            if found:
                return found
        return []


def _orders_with_email(email: str, orders: Sequence[StoreOrder]) -> List[StoreOrder]:
    if not email:
        return []
    return [order for order in orders if normalize_email(order.email) == email]


DEFAULT_MATCHERS = (EmailMatcher, PhoneMatcher, PartialEmailMatcher, FuzzyDomainMatcher)


@dataclass
class MatchResult:
    order: StoreOrder
    method: str


def build_matchers(window_hours: float = 48, classes=DEFAULT_MATCHERS) -> List[LeadMatcher]:
    return [cls(window_hours) for cls in classes]


def match_lead(
    lead: Lead,
    orders: Sequence[StoreOrder],
    matchers: Optional[Sequence[LeadMatcher]] = None,
    *,
    window_hours: float = 48,
) -> Optional[MatchResult]:
    for matcher in matchers or build_matchers(window_hours):
        order = matcher.try_match(lead, orders)
        if order is not None:
            return MatchResult(order=order, method=matcher.name)
    return None


def reference_tag(lead: Lead, prefix: str) -> str:
    return f"{prefix}{lead.reference}"


def find_claimed_order(lead: Lead, orders: Sequence[StoreOrder], prefix: str) -> Optional[StoreOrder]:
    if not lead.reference:
        return None
    tag = reference_tag(lead, prefix)
    for order in orders:
        if tag in order.tags:
            return order
    return None
