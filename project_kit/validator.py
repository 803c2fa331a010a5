"""
validator
---------

DeploymentRequest 가 이 operator 가 처리할 대상인지, 필수 값이 채워져 있는지 판단한다.
부수효과는 없다.
"""

from __future__ import annotations

from .config import OperatorConfig
from .errors import RequestValidationError
from .models import DeploymentRequest, ValidationOutcome


def validate(req: DeploymentRequest, cfg: OperatorConfig) -> ValidationOutcome:
    """
    규칙을 순서대로 확인하고 처음 걸리는 결과를 돌려준다.
    """
    if req.platform_kind != cfg.platform_tag:
        return ValidationOutcome.NOT_THIS_PLATFORM
    if not req.managed:
        return ValidationOutcome.NOT_MANAGED
    if req.installed:
        return ValidationOutcome.ALREADY_INSTALLED
    if not req.project_id:
        return ValidationOutcome.MISSING_PROJECT_ID
    if not req.region:
        return ValidationOutcome.MISSING_REGION
    if req.region not in cfg.supported_regions:
        return ValidationOutcome.REGION_NOT_SUPPORTED
    return ValidationOutcome.VALID


def ensure_valid(req: DeploymentRequest, cfg: OperatorConfig) -> ValidationOutcome:
    """
    validate() 결과가 에러면 RequestValidationError 를 던지고,
    VALID / ALREADY_INSTALLED 는 그대로 돌려준다.
    """
    outcome = validate(req, cfg)
    if outcome.is_error:
        raise RequestValidationError(outcome, req.ref)
    return outcome
