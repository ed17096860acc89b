from collections import Counter, OrderedDict
from typing import Dict, List, Sequence
from guestpass.core.config import NOT_A_RECIPIENT
from guestpass.models.guest import Guest


def summary(guests: Sequence[Guest]) -> Dict[str, int]:
    return {
        "total": len(guests),
        "invited": sum(1 for g in guests if g.invitation_sent),
        "confirmed": sum(1 for g in guests if g.rsvp_confirmed),
        "checked_in": sum(1 for g in guests if g.checked_in),
        "award_recipients": sum(1 for g in guests if g.award_category != NOT_A_RECIPIENT),
    }


def organization_breakdown(guests: Sequence[Guest]) -> List[dict]:
    stats: Dict[str, dict] = {}
    for guest in guests:
        org = guest.organization.strip() or "Unknown"
        entry = stats.setdefault(org, {"name": org, "total": 0, "invited": 0, "confirmed": 0, "checked_in": 0})
        entry["total"] += 1
        entry["invited"] += int(guest.invitation_sent)
        entry["confirmed"] += int(guest.rsvp_confirmed)
        entry["checked_in"] += int(guest.checked_in)
    return sorted(stats.values(), key=lambda s: s["total"], reverse=True)


def top_organizations(guests: Sequence[Guest], limit: int = 7) -> List[dict]:
    counts = Counter(g.organization.strip() or "Unknown" for g in guests)
    return [{"name": name, "count": count} for name, count in counts.most_common(limit)]


def timeline(guests: Sequence[Guest], days: int = 14) -> List[dict]:
    """RSVPs and invitations per calendar day, last `days` days with activity"""
    by_date: Dict[str, dict] = {}
    for guest in guests:
        if guest.rsvp_date:
            day = guest.rsvp_date.date().isoformat()
            by_date.setdefault(day, {"date": day, "rsvp": 0, "invited": 0})["rsvp"] += 1
        if guest.invitation_sent_at:
            day = guest.invitation_sent_at.date().isoformat()
            by_date.setdefault(day, {"date": day, "rsvp": 0, "invited": 0})["invited"] += 1
    ordered = OrderedDict(sorted(by_date.items()))
    return list(ordered.values())[-days:]


def recent_activity(guests: Sequence[Guest], limit: int = 5) -> List[dict]:
    activities = []
    for guest in guests:
        if guest.rsvp_confirmed:
            activities.append({"type": "rsvp", "guest_id": guest.id, "name": guest.name,
                               "time": guest.rsvp_confirmed_at or guest.rsvp_date})
        if guest.checked_in and guest.check_in_time:
            activities.append({"type": "check_in", "guest_id": guest.id, "name": guest.name,
                               "time": guest.check_in_time})
    activities.sort(key=lambda a: a["time"], reverse=True)
    return [dict(a, time=a["time"].isoformat()) for a in activities[:limit]]


def organizations_without_rsvp(guests: Sequence[Guest], invited_organizations: Sequence[str]) -> List[str]:
    """Invited organizations with no guest whose organization mentions them"""
    present = [g.organization.lower() for g in guests if g.organization]
    return [
        org for org in invited_organizations
        if not any(org.lower() in name or name in org.lower() for name in present)
    ]
