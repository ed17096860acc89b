from fastapi import APIRouter, Depends, HTTPException
import logging
from guestpass.api.deps import get_category_store, get_confirmations
from guestpass.core.config import settings, NOT_A_RECIPIENT
from guestpass.core.deps import get_current_admin
from guestpass.core.exceptions import CategoryError, ConfirmationError, ProtectedCategoryError
from guestpass.schemas import CategoryConfirm, CategoryCreate, ConfirmRequest, PendingActionResponse
from guestpass.services.categories import CategoryStore
from guestpass.services.confirmations import DELETE_CATEGORY, RESET_CATEGORIES, ConfirmationRegistry

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


@router.get("/categories")
def list_categories(categories: CategoryStore = Depends(get_category_store)):
    return {"categories": categories.list(), "award_sections": settings.AWARD_SECTIONS}


@router.post("/categories", status_code=201)
def add_category(payload: CategoryCreate, categories: CategoryStore = Depends(get_category_store)):
    try:
        label = categories.add(payload.label)
    except CategoryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success", "label": label, "categories": categories.list()}


@router.post("/categories/delete-request", response_model=PendingActionResponse)
def request_delete_category(
    payload: CategoryCreate,
    categories: CategoryStore = Depends(get_category_store),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    # The protected label never gets a token
    if payload.label == NOT_A_RECIPIENT:
        raise HTTPException(status_code=400, detail=str(ProtectedCategoryError(payload.label)))
    if not categories.contains(payload.label):
        raise HTTPException(status_code=404, detail=f"Category '{payload.label}' not found")

    pending = confirmations.request(
        DELETE_CATEGORY, payload.label, prompt=f'Delete category "{payload.label}"?'
    )
    return PendingActionResponse(**pending.__dict__)


@router.post("/categories/delete-confirm")
def confirm_delete_category(
    payload: CategoryConfirm,
    categories: CategoryStore = Depends(get_category_store),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    try:
        confirmations.confirm(payload.token, DELETE_CATEGORY, payload.label)
        categories.delete(payload.label)
    except (ConfirmationError, CategoryError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "success", "message": "Category removed.", "categories": categories.list()}


@router.post("/categories/reset-request", response_model=PendingActionResponse)
def request_reset_categories(confirmations: ConfirmationRegistry = Depends(get_confirmations)):
    pending = confirmations.request(
        RESET_CATEGORIES,
        prompt="Populate with default system categories? Existing custom categories will remain.",
    )
    return PendingActionResponse(**pending.__dict__)


@router.post("/categories/reset-confirm")
def confirm_reset_categories(
    payload: ConfirmRequest,
    categories: CategoryStore = Depends(get_category_store),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    try:
        confirmations.confirm(payload.token, RESET_CATEGORIES)
    except ConfirmationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    added = categories.seed_defaults()
    return {"status": "success", "added": added, "categories": categories.list()}
