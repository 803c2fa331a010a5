from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from google.api_core.exceptions import NotFound

from .config import OperatorConfig
from .errors import CredentialUnavailable, RequestValidationError
from .gateway import CloudGateway, GatewayFactory, provider_call
from .gcp_auth import ensure_iam_roles, ensure_identity, rotate_key
from .gcp_gateway import GoogleCloudGateway
from .gcp_project import activate_apis, ensure_project
from .gcp_secrets import (
    SecretStore,
    output_secret_exists,
    publish_key_secret,
    resolve_credentials,
)
from .logging_utils import get_request_logger
from .models import (
    CloudCredentials,
    DeploymentRequest,
    GeneratedSecret,
    ServiceAccountKey,
    ServiceIdentity,
    ValidationOutcome,
)
from .validator import ensure_valid, validate


class ReconcileOutcome(str, Enum):
    PROVISIONED = "provisioned"
    ALREADY_INSTALLED = "already_installed"
    SECRET_PRESENT = "secret_present"


@dataclass
class ReconcileResult:
    request: DeploymentRequest
    outcome: ReconcileOutcome
    executed: List[str] = field(default_factory=list)

    def summary(self) -> str:
        lines: List[str] = []
        lines.append("# Reconcile summary")
        lines.append(f"- request: {self.request.ref}")
        lines.append(f"- project: {self.request.project_id}")
        lines.append(f"- outcome: {self.outcome.value}")
        lines.append("")

        lines.append("## Executed stages")
        if self.executed:
            for s in self.executed:
                lines.append(f"- {s}")
        else:
            lines.append("- (none)")

        lines.append("")
        lines.append("## Skipped stages")
        skipped = [s for s in ALL_STAGES if s not in self.executed]
        if skipped:
            for s in skipped:
                lines.append(f"- {s}")
        else:
            lines.append("- (none)")

        return "\n".join(lines)


@dataclass
class _PassState:
    """한 번의 reconcile 동안 단계 사이에 넘겨지는 값들."""

    request: DeploymentRequest
    cfg: OperatorConfig
    store: SecretStore
    gateway_factory: GatewayFactory
    credentials: Optional[CloudCredentials] = None
    gateway: Optional[CloudGateway] = None
    identity: Optional[ServiceIdentity] = None
    key: Optional[ServiceAccountKey] = None
    secret: Optional[GeneratedSecret] = None


def _build_gateway(
    request: DeploymentRequest,
    cfg: OperatorConfig,
    creds: CloudCredentials,
    gateway_factory: GatewayFactory,
) -> CloudGateway:
    try:
        return gateway_factory(request.project_id, creds)
    except ValueError as e:
        # 서비스 계정 JSON 형식이 맞지 않는 경우
        raise CredentialUnavailable(
            cfg.operator_namespace,
            cfg.org_secret_name,
            f"자격증명으로 gateway 를 만들 수 없습니다: {e}",
        ) from e


def _stage_credentials(state: _PassState) -> None:
    state.credentials = resolve_credentials(state.store, state.cfg)
    state.gateway = _build_gateway(
        state.request, state.cfg, state.credentials, state.gateway_factory
    )


def _stage_project(state: _PassState) -> None:
    ensure_project(state.gateway, state.request.project_id, state.cfg.parent_folder_id)


def _stage_apis(state: _PassState) -> None:
    activate_apis(
        state.gateway,
        state.request.project_id,
        state.credentials.billing_account_id,
    )


def _stage_identity(state: _PassState) -> None:
    state.identity = ensure_identity(state.gateway, state.cfg.service_account_name)


def _stage_iam(state: _PassState) -> None:
    ensure_iam_roles(state.gateway, state.cfg.required_roles, state.identity.principal)


def _stage_key(state: _PassState) -> None:
    state.key = rotate_key(state.gateway, state.identity.email)


def _stage_secret(state: _PassState) -> None:
    state.secret = publish_key_secret(
        state.store, state.request.namespace, state.key, state.cfg
    )


# 실행 순서 그대로. 앞 단계가 실패하면 뒤 단계는 실행하지 않는다.
STAGES: List[Tuple[str, Callable[[_PassState], None]]] = [
    ("credentials", _stage_credentials),
    ("project", _stage_project),
    ("apis", _stage_apis),
    ("identity", _stage_identity),
    ("iam", _stage_iam),
    ("key", _stage_key),
    ("secret", _stage_secret),
]

ALL_STAGES: List[str] = [name for name, _ in STAGES]


def reconcile(
    request: DeploymentRequest,
    cfg: OperatorConfig,
    store: SecretStore,
    gateway_factory: GatewayFactory = GoogleCloudGateway.from_credentials,
) -> ReconcileResult:
    """
    DeploymentRequest 하나를 목표 상태로 맞춘다.

    이미 설치된 요청이거나 결과 secret 이 이미 있으면 provider 를 건드리지 않고 끝난다.
    그 외에는 STAGES 를 순서대로 실행하고, 실패한 단계의 예외를 그대로 올린다.
    처음부터 다시 실행해도 안전하다.
    """
    log = get_request_logger(__name__, request)
    log.info("reconcile 시작 (project=%s, region=%s)", request.project_id, request.region)

    try:
        outcome = ensure_valid(request, cfg)
    except RequestValidationError as e:
        log.error("요청 검증 실패: %s", e.outcome.value)
        raise

    if outcome is ValidationOutcome.ALREADY_INSTALLED:
        log.info("이미 설치된 요청이라 할 일이 없습니다.")
        return ReconcileResult(request, ReconcileOutcome.ALREADY_INSTALLED)

    if output_secret_exists(store, request.namespace, cfg):
        log.info(
            "결과 secret 이 이미 있습니다: %s/%s (할 일 없음)",
            request.namespace,
            cfg.output_secret_name,
        )
        return ReconcileResult(request, ReconcileOutcome.SECRET_PRESENT)

    state = _PassState(
        request=request,
        cfg=cfg,
        store=store,
        gateway_factory=gateway_factory,
    )
    executed: List[str] = []

    for name, stage in STAGES:
        log.info("단계 실행: %s", name)
        try:
            stage(state)
        except Exception as e:
            log.error("단계 실패: %s (%s)", name, e)
            raise
        executed.append(name)

    log.info("reconcile 완료")
    return ReconcileResult(request, ReconcileOutcome.PROVISIONED, executed)


def plan_reconcile(
    request: DeploymentRequest,
    cfg: OperatorConfig,
    store: SecretStore,
) -> str:
    """
    reconcile 이 무엇을 할지 요약 텍스트로 돌려준다. provider 호출은 하지 않는다.
    """
    outcome = validate(request, cfg)

    lines: List[str] = []
    lines.append("# Reconcile plan")
    lines.append(f"- request: {request.ref}")
    lines.append(f"- project: {request.project_id or '(not set)'}")
    lines.append(f"- region: {request.region or '(not set)'}")
    lines.append(f"- validation: {outcome.value}")

    will_run = outcome is ValidationOutcome.VALID
    if will_run:
        present = output_secret_exists(store, request.namespace, cfg)
        lines.append(
            f"- output secret: {'present' if present else 'absent'} "
            f"({request.namespace}/{cfg.output_secret_name})"
        )
        will_run = not present
    lines.append("")

    lines.append("## Stages")
    status = "RUN" if will_run else "SKIPPED"
    for name in ALL_STAGES:
        lines.append(f"- {name}: {status}")

    return "\n".join(lines)


def deprovision(
    request: DeploymentRequest,
    cfg: OperatorConfig,
    store: SecretStore,
    gateway_factory: GatewayFactory = GoogleCloudGateway.from_credentials,
) -> List[str]:
    """
    reconcile 이 만든 것을 지운다: 서비스 계정, 프로젝트, 결과 secret.
    이미 없는 것은 건너뛴다. 지운 항목 목록을 돌려준다.
    """
    log = get_request_logger(__name__, request)

    outcome = validate(request, cfg)
    if outcome.is_error:
        raise RequestValidationError(outcome, request.ref)

    creds = resolve_credentials(store, cfg)
    gateway = _build_gateway(request, cfg, creds, gateway_factory)
    removed: List[str] = []

    name = cfg.service_account_name
    identity: Optional[ServiceIdentity] = None
    with provider_call("teardown", "get_service_account", name=name):
        try:
            identity = gateway.get_service_account(name)
        except NotFound:
            log.info("서비스 계정이 이미 없습니다: %s", name)

    if identity is not None:
        with provider_call("teardown", "delete_service_account", email=identity.email):
            gateway.delete_service_account(identity.email)
        log.info("서비스 계정을 삭제했습니다: %s", identity.email)
        removed.append(f"service-account:{identity.email}")

    with provider_call("teardown", "delete_project", project_id=request.project_id):
        try:
            gateway.delete_project()
            log.info("프로젝트 삭제를 요청했습니다: %s", request.project_id)
            removed.append(f"project:{request.project_id}")
        except NotFound:
            log.info("프로젝트가 이미 없습니다: %s", request.project_id)

    if store.delete(request.namespace, cfg.output_secret_name):
        log.info("결과 secret 을 삭제했습니다: %s/%s", request.namespace, cfg.output_secret_name)
        removed.append(f"secret:{request.namespace}/{cfg.output_secret_name}")

    return removed
