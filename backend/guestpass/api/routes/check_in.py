from fastapi import APIRouter, Depends
import logging
import time
from guestpass.api.deps import get_check_in_engine
from guestpass.core.deps import get_current_admin
from guestpass.schemas import CheckInRequest, ScanResultResponse
from guestpass.services.check_in import CheckInEngine

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


@router.post("/check-in", response_model=ScanResultResponse)
def check_in(payload: CheckInRequest, engine: CheckInEngine = Depends(get_check_in_engine)):
    """
    Verify a scanned pass and record the check-in.
    Rejections are normal results, not HTTP errors.
    """
    start_time = time.time()
    result = engine.process(payload.pass_id)

    logger.info(f"Check-in processed in {time.time() - start_time:.3f}s")
    return ScanResultResponse.from_result(result)
