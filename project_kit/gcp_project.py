"""
gcp_project
-----------

GCP 프로젝트 생성과, 결제 API / 결제 계정 연결 / DNS API 활성화를 담당하는 모듈.
"""

from __future__ import annotations

from typing import Any, Optional

from google.api_core.exceptions import Conflict

from .gateway import CloudGateway, provider_call
from .logging_utils import get_logger


logger = get_logger(__name__)


def ensure_project(gateway: CloudGateway, project_id: str, parent_folder_id: str) -> Optional[Any]:
    """
    프로젝트 생성을 요청한다. 이미 있으면(409) 성공으로 본다.

    생성 operation 은 기다리지 않고 그대로 돌려준다.
    아직 준비되지 않은 프로젝트 때문에 뒤 단계가 실패하면 다음 reconcile 에서 다시 진행된다.
    """
    logger.info("프로젝트 생성 요청: %s (parent folder=%s)", project_id, parent_folder_id)
    with provider_call(
        "project",
        "create_project",
        project_id=project_id,
        parent_folder_id=parent_folder_id,
    ):
        try:
            operation = gateway.create_project(parent_folder_id)
        except Conflict:
            logger.info("이미 존재하는 프로젝트를 사용합니다: %s", project_id)
            return None
    return operation


def activate_apis(gateway: CloudGateway, project_id: str, billing_account_id: str) -> None:
    """
    결제 API 활성화 -> 결제 계정 연결 -> DNS API 활성화 순서로 호출한다.
    하나라도 실패하면 나머지는 호출하지 않는다.
    """
    logger.info("결제 API 활성화: %s", project_id)
    with provider_call("apis", "enable_billing_api", project_id=project_id):
        gateway.enable_billing_api(project_id)

    logger.info("결제 계정 연결: %s", project_id)
    with provider_call(
        "apis",
        "link_billing_account",
        project_id=project_id,
        billing_account_id=billing_account_id,
    ):
        gateway.link_billing_account(project_id, billing_account_id)

    logger.info("DNS API 활성화: %s", project_id)
    with provider_call("apis", "enable_dns_api", project_id=project_id):
        gateway.enable_dns_api(project_id)
