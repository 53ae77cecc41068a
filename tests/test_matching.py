# tests/test_matching.py
import pytest

from services.matching import (
    EmailMatcher,
    FuzzyDomainMatcher,
    PartialEmailMatcher,
    PhoneMatcher,
    domain_variants,
    find_claimed_order,
    match_lead,
    normalize_email,
    normalize_phone,
)
from services.records import format_lead, format_orders
from tests.fakes import make_lead, make_order


@pytest.mark.parametrize(
    "raw",
    ["+48 577 558 591", "48577558591", "0577558591", "577558591", "+48-577-558-591", "(+48) 577 558 591"],
)
def test_polish_phone_variants_normalize_to_national_number(raw):
    assert normalize_phone(raw) == "577558591"


def test_normalize_phone_keeps_foreign_numbers():
    assert normalize_phone("+1 (555) 010-2030") == "+15550102030"
    assert normalize_phone("4857755859") == "4857755859"
    assert normalize_phone(None) == ""


def test_email_normalization_ignores_case_and_whitespace():
    assert normalize_email(" User@Example.com ") == "user@example.com"


def test_email_matcher_is_case_and_whitespace_insensitive():
    lead = format_lead(make_lead("PCOD-1", email=" User@Example.com "))
    orders = format_orders([make_order(1, email="user@example.com")])
    assert EmailMatcher().try_match(lead, orders).id == 1


def test_phone_matcher_checks_address_phones():
    lead = format_lead(make_lead("PCOD-2", phone="+48 577 558 591"))
    orders = format_orders(
        [
            make_order(1, phone="+48 600 000 000"),
            make_order(2, billing_address={"phone": "600111222"}),
            make_order(3, shipping_address={"phone": "0577558591"}),
        ]
    )
    assert PhoneMatcher().try_match(lead, orders).id == 3


def test_phone_matcher_skips_lead_without_phone():
    lead = format_lead(make_lead("PCOD-3", phone="  "))
    orders = format_orders([make_order(1, phone="")])
    assert PhoneMatcher().try_match(lead, orders) is None


def test_partial_email_matcher_ignores_domain():
    lead = format_lead(make_lead("PCOD-4", email="alice@gmail.com"))
    yahoo = format_orders([make_order(1, email="alice@yahoo.com")])
    lookalike = format_orders([make_order(2, email="alicia@gmail.com")])
    assert PartialEmailMatcher().try_match(lead, yahoo).id == 1
    assert PartialEmailMatcher().try_match(lead, lookalike) is None


def test_domain_variants_follow_fixed_table():
    assert domain_variants("wp.pl") == ["wp.pl", "wp.com", "o2.pl"]
    assert domain_variants("gmail.com") == ["gmail.com", "gmail.pl"]


def test_fuzzy_matcher_returns_first_variant_hit():
    lead = format_lead(make_lead("PCOD-5", email="jan@wp.pl"))
    orders = format_orders([make_order(1, email="jan@o2.pl"), make_order(2, email="jan@wp.com")])
    # wp.com comes before o2.pl in the variant table
    assert FuzzyDomainMatcher().try_match(lead, orders).id == 2


def test_fuzzy_matcher_returns_none_without_variant_hit():
    lead = format_lead(make_lead("PCOD-6", email="jan@interia.pl"))
    orders = format_orders([make_order(1, email="jan@onet.pl")])
    assert FuzzyDomainMatcher().try_match(lead, orders) is None


def test_email_match_wins_over_phone_match():
    lead = format_lead(make_lead("PCOD-7", email="a@b.com", phone="577558591"))
    orders = format_orders(
        [
            make_order(1, phone="+48577558591"),
            make_order(2, email="a@b.com"),
        ]
    )
    result = match_lead(lead, orders)
    assert result.order.id == 2
    assert result.method == "email"


def test_match_falls_through_strategies_in_order():
    lead = format_lead(make_lead("PCOD-8", email="kasia@gmail.pl", phone="123"))
    orders = format_orders([make_order(1, email="kasia@gmail.com")])
    result = match_lead(lead, orders)
    # the username matches before the domain table is consulted
    assert result.method == "partial_email"


def test_no_match_returns_none():
    lead = format_lead(make_lead("PCOD-9", email="x@y.com", phone="999"))
    orders = format_orders([make_order(1, email="z@y.com", phone="111")])
    assert match_lead(lead, orders) is None


def test_multiple_candidates_prefer_order_inside_window():
    lead = format_lead(make_lead("PCOD-10", email="a@b.com", created_at="2025-06-10 09:00:00"))
    orders = format_orders(
        [
            make_order(1, email="a@b.com", created_at="2025-05-01T10:00:00+00:00"),
            make_order(2, email="a@b.com", created_at="2025-06-11T08:00:00+00:00"),
        ]
    )
    assert match_lead(lead, orders, window_hours=48).order.id == 2
    assert match_lead(lead, orders, window_hours=12).order.id == 1


def test_claimed_order_is_found_by_reference_tag():
    lead = format_lead(make_lead("PCOD-11"))
    orders = format_orders(
        [make_order(1, tags="vip"), make_order(2, tags="primecod-ref-PCOD-11, cod-fulfilled")]
    )
    assert find_claimed_order(lead, orders, "primecod-ref-").id == 2
    assert find_claimed_order(lead, orders[:1], "primecod-ref-") is None
