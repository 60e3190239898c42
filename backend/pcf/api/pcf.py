from fastapi import APIRouter, BackgroundTasks, Depends, Response

from pcf.schemas.pcf import (
    EvaluateLoginRequest,
    EvaluateLoginResponse,
    ReportFingerprintRequest,
    ReportFingerprintResponse,
)
from pcf.dependencies import get_login_service, get_notifier
from pcf.services.login_service import LoginRiskService
from pcf.services.notifier import Notifier

router = APIRouter(tags=["pcf"])


# Sync handlers: the store blocks, so these run in the threadpool
@router.post("/evaluate_login", response_model=EvaluateLoginResponse)
def evaluate_login(
    payload: EvaluateLoginRequest,
    response: Response,
    service: LoginRiskService = Depends(get_login_service),
):
    """Register a login attempt and tell the extension whether to run the sandbox."""
    result = service.evaluate_login(payload.user_token, payload.domain, payload.login_ip)
    # The service site relays these headers to the browser unchanged
    response.headers["X-PCF-Login-Event-Id"] = result.login_event_id
    response.headers["X-PCF-Domain-Salt"] = result.domain_salt
    response.headers["X-PCF-Run-Sandbox"] = "1" if result.run_sandbox else "0"
    return result


@router.post("/report_fp", response_model=ReportFingerprintResponse)
def report_fp(
    payload: ReportFingerprintRequest,
    background_tasks: BackgroundTasks,
    service: LoginRiskService = Depends(get_login_service),
    notifier: Notifier = Depends(get_notifier),
):
    outcome = service.report_fingerprint(
        payload.login_event_id,
        safe_fp=payload.safe_fp,
        security_signal=payload.security_signal,
        local_classification=payload.local_classification,
        domain=payload.domain,
    )
    background_tasks.add_task(notifier.notify, outcome.notification)
    return outcome.response
