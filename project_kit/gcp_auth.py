"""
gcp_auth
--------

프로젝트 안의 관리용 서비스 계정을 준비하고,
필요한 IAM 역할을 부여한 뒤 키를 새로 발급하는 모듈.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from google.api_core.exceptions import GoogleAPICallError, NotFound, RetryError

from .errors import KeyCleanupIncomplete
from .gateway import CloudGateway, provider_call
from .logging_utils import get_logger
from .models import Binding, IamPolicy, ServiceAccountKey, ServiceIdentity


logger = get_logger(__name__)


def ensure_identity(gateway: CloudGateway, name: str) -> ServiceIdentity:
    """
    서비스 계정을 이름으로 조회하고, 없으면 같은 이름을 display name 으로 생성한다.

    조회 실패는 원인과 관계없이 "없음"으로 보고 생성을 시도한다.
    일시적인 오류였다면 생성 쪽에서 실패가 드러난다.
    """
    logger.info("서비스 계정 확인: %s", name)
    try:
        identity = gateway.get_service_account(name)
        logger.info("기존 서비스 계정을 사용합니다: %s", identity.email)
        return identity
    except NotFound:
        logger.info("서비스 계정이 없어 새로 생성합니다: %s", name)
    except (GoogleAPICallError, RetryError) as e:
        logger.warning("서비스 계정 조회 실패, 생성 시도: %s (%s)", name, e)

    with provider_call("identity", "create_service_account", name=name, display_name=name):
        identity = gateway.create_service_account(name, name)
    logger.info("서비스 계정을 생성했습니다: %s", identity.email)
    return identity


def reconcile_bindings(
    bindings: Sequence[Binding],
    required_roles: Sequence[str],
    principal: str,
) -> Tuple[List[Binding], bool]:
    """
    required_roles 각각에 principal 이 들어 있도록 binding 목록을 맞춘다.

    - 해당 role 의 binding 이 없으면 새로 추가한다.
    - 있으면 principal 을 members 끝에 붙인다. 같은 role 이 여러 개면 첫 번째만 고친다.
    - 다른 role 의 binding 과 기존 member 는 건드리지 않는다.

    입력은 바꾸지 않고 새 목록과 변경 여부를 돌려준다.
    """
    result = [Binding(role=b.role, members=list(b.members)) for b in bindings]
    changed = False

    for role in required_roles:
        existing = next((b for b in result if b.role == role), None)
        if existing is None:
            result.append(Binding(role=role, members=[principal]))
            changed = True
        elif principal not in existing.members:
            existing.members.append(principal)
            changed = True

    return result, changed


def ensure_iam_roles(
    gateway: CloudGateway,
    required_roles: Sequence[str],
    principal: str,
) -> bool:
    """
    프로젝트 IAM 정책에 필요한 역할을 반영한다.
    바뀐 것이 있을 때만 set 을 호출한다(쓰기 호출은 quota 대상).
    """
    with provider_call("iam", "get_iam_policy", project_id=gateway.project_id):
        policy = gateway.get_iam_policy()

    bindings, changed = reconcile_bindings(policy.bindings, required_roles, principal)
    if not changed:
        logger.info("IAM 정책이 이미 최신입니다: %s", principal)
        return False

    updated = IamPolicy(bindings=bindings, etag=policy.etag, version=policy.version)
    with provider_call("iam", "set_iam_policy", project_id=gateway.project_id, principal=principal):
        gateway.set_iam_policy(updated)
    logger.info("IAM 정책을 갱신했습니다: %s (roles=%d)", principal, len(required_roles))
    return True


def rotate_key(gateway: CloudGateway, email: str) -> ServiceAccountKey:
    """
    기존 키를 정리하고 새 키를 하나 발급한다.

    새로 만든 서비스 계정에도 기본 키가 하나 딸려 있으므로
    키가 1개 이하면 정리하지 않고 바로 발급한다.
    2개 이상이면 전부 지운 뒤 다시 조회해서 1개 이하인지 확인한다.
    """
    with provider_call("key", "list_service_account_keys", email=email):
        keys = gateway.list_service_account_keys(email)

    if len(keys) <= 1:
        logger.info("정리할 키가 없습니다: %s (현재 %d개)", email, len(keys))
    else:
        logger.info("기존 키 %d개를 삭제합니다: %s", len(keys), email)
        for key in keys:
            with provider_call("key", "delete_service_account_key", email=email, key=key.name):
                gateway.delete_service_account_key(key.name)

        with provider_call("key", "list_service_account_keys", email=email):
            remaining = gateway.list_service_account_keys(email)
        if len(remaining) > 1:
            raise KeyCleanupIncomplete(email, len(remaining))

    with provider_call("key", "create_service_account_key", email=email):
        key = gateway.create_service_account_key(email)
    logger.info("새 서비스 계정 키를 발급했습니다: %s", email)
    return key
