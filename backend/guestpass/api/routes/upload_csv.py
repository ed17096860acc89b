from fastapi import APIRouter, UploadFile, File, Depends, HTTPException
import csv
import io
import logging
from guestpass.api.deps import get_registration_service
from guestpass.core.config import settings
from guestpass.core.deps import get_current_admin
from guestpass.core.exceptions import DuplicateGuestError, StoreUnavailableError
from guestpass.schemas import BatchUploadResponse, GuestResult
from guestpass.services.registration import RegistrationService

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


@router.post("/upload-csv", response_model=BatchUploadResponse)
async def upload_csv(
    file: UploadFile = File(...),
    registration: RegistrationService = Depends(get_registration_service),
):
    if not file.filename.lower().endswith('.csv'):
        raise HTTPException(status_code=400, detail="Invalid file type")

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File exceeds {settings.MAX_UPLOAD_SIZE_MB} MB")

    try:
        # utf-8-sig drops the BOM spreadsheet exports tend to add
        decoded_content = content.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")

    csv_reader = csv.DictReader(io.StringIO(decoded_content))
    headers = [h.strip().lower() for h in csv_reader.fieldnames or []]
    if 'email' not in headers or 'name' not in headers:
        raise HTTPException(status_code=400, detail=f"CSV must have 'Name' and 'Email' headers. Found: {headers}")

    rows = [{k.strip(): v for k, v in row.items() if k} for row in csv_reader]

    try:
        created, skipped_emails = registration.import_rows(rows)
    except DuplicateGuestError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError as e:
        logger.error(f"Database error: {e}")
        raise HTTPException(status_code=500, detail="Database commit failed")

    logger.info(f"Processed {len(created)} new guests, skipped {len(skipped_emails)}")
    return BatchUploadResponse(
        total_processed=len(rows),
        success_count=len(created),
        skipped_emails=skipped_emails,
        results=[GuestResult.from_guest(g) for g in created],
    )
