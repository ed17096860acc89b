from fastapi import APIRouter, Depends, HTTPException, Response
import logging
from guestpass.api.deps import get_guest_store, get_registration_service
from guestpass.core.config import settings
from guestpass.core.exceptions import DuplicateGuestError, GuestNotFoundError, GuestValidationError, StoreUnavailableError
from guestpass.schemas import GuestResult, RSVPRequest
from guestpass.services.guest_store import GuestStore
from guestpass.services.registration import RegistrationService
from guestpass.utils.image import render_pass_qr

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/event")
async def event_details():
    """Public event information for the RSVP page"""
    return {
        "name": settings.EVENT_NAME,
        "date": settings.EVENT_DATE,
        "time": settings.EVENT_TIME,
        "location": settings.EVENT_LOCATION,
        "sub_location": settings.EVENT_SUB_LOCATION,
        "award_sections": settings.AWARD_SECTIONS,
    }


@router.post("/rsvp", response_model=GuestResult, status_code=201)
def submit_rsvp(
    payload: RSVPRequest,
    registration: RegistrationService = Depends(get_registration_service),
):
    """
    Register a guest and issue their pass.
    """
    try:
        guest = registration.register_rsvp(payload.model_dump())
    except GuestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateGuestError as e:
        # Only possible on an id collision; the client may simply retry
        logger.error(f"RSVP id collision: {e}")
        raise HTTPException(status_code=409, detail="Failed to register. Please try again.")
    except StoreUnavailableError as e:
        logger.error(f"RSVP failed: {e}")
        raise HTTPException(status_code=503, detail="Failed to register. Please try again later.")

    return GuestResult.from_guest(guest)


@router.post("/rsvp/{guest_id}/confirm", response_model=GuestResult)
def confirm_rsvp(guest_id: str, registration: RegistrationService = Depends(get_registration_service)):
    """Invited guest confirms attendance; repeating it changes nothing"""
    try:
        guest = registration.confirm_rsvp(guest_id)
    except GuestNotFoundError:
        raise HTTPException(status_code=404, detail="Invalid pass link")
    except StoreUnavailableError:
        raise HTTPException(status_code=503, detail="Could not confirm. Please try again later.")
    return GuestResult.from_guest(guest)


@router.get("/pass/{guest_id}", response_model=GuestResult)
def get_pass(guest_id: str, store: GuestStore = Depends(get_guest_store)):
    guest = store.get(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Pass not found")
    return GuestResult.from_guest(guest)


@router.get("/pass/{guest_id}/qr.png")
def get_pass_qr(guest_id: str, store: GuestStore = Depends(get_guest_store)):
    guest = store.get(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Pass not found")
    return Response(content=render_pass_qr(guest.id), media_type="image/png")
