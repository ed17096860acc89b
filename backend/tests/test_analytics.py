"""
Tests for dashboard analytics.
"""

from datetime import timedelta

from conftest import T0, make_guest
from guestpass.services import analytics
from guestpass.services.roster import mark_checked_in, mark_confirmed, mark_invited


def _guests():
    return [
        mark_checked_in(mark_confirmed(make_guest(id="a", organization="Emirates"), T0), T0 + timedelta(days=3)),
        mark_invited(make_guest(id="b", organization="Emirates ", award_category="VIP"), T0 + timedelta(days=1)),
        make_guest(id="c", organization="", rsvp_date=T0 + timedelta(days=1)),
        mark_confirmed(make_guest(id="d", organization="Manta Air"), T0 + timedelta(days=2)),
    ]


def test_summary_counts():
    assert analytics.summary(_guests()) == {
        "total": 4,
        "invited": 1,
        "confirmed": 2,
        "checked_in": 1,
        "award_recipients": 1,
    }


def test_organization_breakdown_trims_and_sorts():
    breakdown = analytics.organization_breakdown(_guests())

    assert breakdown[0] == {"name": "Emirates", "total": 2, "invited": 1, "confirmed": 1, "checked_in": 1}
    assert {row["name"] for row in breakdown} == {"Emirates", "Unknown", "Manta Air"}


def test_top_organizations_limit():
    top = analytics.top_organizations(_guests(), limit=2)

    assert len(top) == 2
    assert top[0] == {"name": "Emirates", "count": 2}


def test_timeline_groups_by_day():
    timeline = analytics.timeline(_guests())

    assert timeline[0] == {"date": "2026-01-20", "rsvp": 3, "invited": 0}
    assert timeline[1] == {"date": "2026-01-21", "rsvp": 1, "invited": 1}
    assert analytics.timeline(_guests(), days=1) == [timeline[-1]]


def test_recent_activity_newest_first():
    activity = analytics.recent_activity(_guests(), limit=2)

    assert [(a["type"], a["guest_id"]) for a in activity] == [("check_in", "a"), ("rsvp", "d")]


def test_organizations_without_rsvp():
    missing = analytics.organizations_without_rsvp(_guests(), ["Emirates", "Qatar Airways", "Manta Air"])

    assert missing == ["Qatar Airways"]
