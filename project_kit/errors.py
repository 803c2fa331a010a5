"""
errors
------

reconcile 파이프라인이 호출자에게 돌려주는 예외 계층.

retryable 은 이벤트 재전달 쪽에서 재시도 여부를 판단할 때 참고하는 값이다.
파이프라인 자체는 재시도하지 않는다.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ProjectKitError(Exception):
    """project_kit 의 모든 예외의 기반 클래스."""

    retryable: bool = True


class RequestValidationError(ProjectKitError, ValueError):
    """
    DeploymentRequest 가 검증을 통과하지 못했다.
    레코드가 바뀌기 전까지 재시도해도 결과가 같다.
    """

    retryable = False

    def __init__(self, outcome: Any, request_ref: str = "") -> None:
        self.outcome = outcome
        self.request_ref = request_ref
        label = getattr(outcome, "value", outcome)
        where = f" ({request_ref})" if request_ref else ""
        super().__init__(f"요청 검증 실패: {label}{where}")


class CredentialUnavailable(ProjectKitError):
    """조직 자격증명 secret 이 없거나 필수 필드가 비어 있다."""

    def __init__(self, namespace: str, name: str, reason: str) -> None:
        self.namespace = namespace
        self.name = name
        self.reason = reason
        super().__init__(f"조직 자격증명을 읽을 수 없습니다: {namespace}/{name}: {reason}")


class ProviderCallError(ProjectKitError, RuntimeError):
    """
    gateway 호출 실패. 어느 단계의 어떤 호출이었는지와 인자를 함께 남긴다.
    """

    def __init__(
        self,
        stage: str,
        operation: str,
        operands: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.stage = stage
        self.operation = operation
        self.operands = dict(operands or {})
        self.cause = cause
        args = ", ".join(f"{k}={v}" for k, v in self.operands.items())
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"[{stage}] {operation}({args}) 호출 실패{detail}")


class KeyCleanupIncomplete(ProjectKitError):
    """기존 키 삭제 후에도 키가 두 개 이상 남아 있다."""

    def __init__(self, email: str, remaining: int) -> None:
        self.email = email
        self.remaining = remaining
        super().__init__(
            f"서비스 계정 키를 모두 삭제하지 못했습니다: {email} (남은 키 {remaining}개)"
        )


class SecretStoreError(ProjectKitError):
    """secret 저장소 읽기/쓰기 실패."""
