import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from guestpass.api.deps import (
    get_confirmations,
    get_guest_store,
    get_invitation_service,
    get_registration_service,
)
from guestpass.core.deps import get_current_admin
from guestpass.core.exceptions import (
    ConfirmationError,
    DuplicateGuestError,
    EmailSendError,
    GuestNotFoundError,
    GuestValidationError,
)
from guestpass.schemas import (
    ConfirmRequest,
    GuestCreate,
    GuestResult,
    GuestUpdate,
    PendingActionResponse,
)
from guestpass.services.confirmations import DELETE_GUEST, ConfirmationRegistry
from guestpass.services.guest_store import GuestStore
from guestpass.services.invitations import InvitationService
from guestpass.services.registration import RegistrationService

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


# ==============================================================================
# 1. LIST / READ GUESTS
# ==============================================================================

@router.get("/guests", response_model=List[GuestResult])
def get_guests(
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    store: GuestStore = Depends(get_guest_store),
):
    """
    Get guests with pagination, newest first.
    Optional: ?search=emirates to filter by name, email or organization.
    """
    return [GuestResult.from_guest(g) for g in store.list_guests(search=search, skip=skip, limit=limit)]


@router.get("/guests/{guest_id}", response_model=GuestResult)
def get_guest(guest_id: str, store: GuestStore = Depends(get_guest_store)):
    guest = store.get(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail=f"Guest {guest_id} not found")
    return GuestResult.from_guest(guest)


# ==============================================================================
# 2. CREATE / EDIT
# ==============================================================================

@router.post("/guests", response_model=GuestResult, status_code=status.HTTP_201_CREATED)
def add_guest(
    payload: GuestCreate,
    registration: RegistrationService = Depends(get_registration_service),
):
    try:
        guest = registration.add_guest(payload.model_dump(exclude_none=True))
    except GuestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateGuestError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return GuestResult.from_guest(guest)


@router.patch("/guests/{guest_id}", response_model=GuestResult)
def update_guest(
    guest_id: str,
    payload: GuestUpdate,
    store: GuestStore = Depends(get_guest_store),
):
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")
    try:
        guest = store.update(guest_id, changes)
    except GuestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GuestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return GuestResult.from_guest(guest)


# ==============================================================================
# 3. DELETE GUEST (request, then confirm)
# ==============================================================================

@router.post("/guests/{guest_id}/delete-request", response_model=PendingActionResponse)
def request_delete_guest(
    guest_id: str,
    store: GuestStore = Depends(get_guest_store),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    guest = store.get(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail=f"Guest {guest_id} not found")

    pending = confirmations.request(
        DELETE_GUEST, guest_id, prompt=f"Are you sure you want to remove {guest.name}?"
    )
    return PendingActionResponse(**pending.__dict__)


@router.post("/guests/{guest_id}/delete-confirm")
def confirm_delete_guest(
    guest_id: str,
    payload: ConfirmRequest,
    store: GuestStore = Depends(get_guest_store),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    try:
        confirmations.confirm(payload.token, DELETE_GUEST, guest_id)
        guest = store.delete(guest_id)
    except ConfirmationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GuestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"[Admin] Deleted guest {guest_id} ({guest.email})")
    return {"status": "success", "message": f"Guest {guest.name} removed."}


# ==============================================================================
# 4. PASS EMAIL
# ==============================================================================

@router.post("/guests/{guest_id}/send-pass")
def send_pass_email(
    guest_id: str,
    store: GuestStore = Depends(get_guest_store),
    invitations: InvitationService = Depends(get_invitation_service),
):
    guest = store.get(guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail=f"Guest {guest_id} not found")

    try:
        delivered = invitations.send_pass_email(guest)
    except GuestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmailSendError as e:
        logger.error(f"Pass email to {guest.email} failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to send pass.")

    if not delivered:
        raise HTTPException(status_code=502, detail="Failed to send pass.")
    return {"status": "success", "message": f"QR Pass email sent to {guest.name}"}
