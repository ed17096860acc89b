from fastapi import APIRouter, Depends
from guestpass.api.deps import get_guest_store
from guestpass.core.config import settings
from guestpass.core.deps import get_current_admin
from guestpass.services import analytics
from guestpass.services.guest_store import GuestStore

router = APIRouter(dependencies=[Depends(get_current_admin)])


@router.get("/stats")
def dashboard_stats(store: GuestStore = Depends(get_guest_store)):
    """Everything the admin dashboard shows, from one roster read"""
    guests = store.all_guests()
    return {
        "summary": analytics.summary(guests),
        "top_organizations": analytics.top_organizations(guests),
        "timeline": analytics.timeline(guests),
        "recent_activity": analytics.recent_activity(guests),
    }


@router.get("/stats/organizations")
def organization_stats(store: GuestStore = Depends(get_guest_store)):
    guests = store.all_guests()
    return {
        "organizations": analytics.organization_breakdown(guests),
        "not_responded": analytics.organizations_without_rsvp(guests, settings.invited_organizations),
    }
