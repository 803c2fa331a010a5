"""
gateway
-------

파이프라인이 provider 에 요청하는 모든 호출의 경계.

구현체는 실패를 google-api-core 예외(Conflict, NotFound 등)로 알려야 한다.
실제 구현은 gcp_gateway.GoogleCloudGateway, 테스트는 in-memory 더블을 쓴다.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List

from google.api_core.exceptions import GoogleAPICallError, RetryError

from .errors import ProviderCallError
from .models import CloudCredentials, IamPolicy, ServiceAccountKey, ServiceIdentity


class CloudGateway(ABC):
    """하나의 프로젝트에 묶인 provider 호출 집합."""

    project_id: str

    # 프로젝트
    @abstractmethod
    def create_project(self, parent_folder_id: str) -> Any:
        """
        프로젝트 생성을 요청하고 비동기 operation 핸들을 돌려준다.
        이미 있으면 google.api_core.exceptions.Conflict 를 던진다.
        """

    @abstractmethod
    def delete_project(self) -> None:
        """프로젝트 삭제를 요청한다."""

    # 서비스 계정
    @abstractmethod
    def get_service_account(self, name: str) -> ServiceIdentity:
        """없으면 NotFound."""

    @abstractmethod
    def create_service_account(self, name: str, display_name: str) -> ServiceIdentity:
        ...

    @abstractmethod
    def delete_service_account(self, email: str) -> None:
        ...

    # 키
    @abstractmethod
    def list_service_account_keys(self, email: str) -> List[ServiceAccountKey]:
        ...

    @abstractmethod
    def delete_service_account_key(self, key_name: str) -> None:
        ...

    @abstractmethod
    def create_service_account_key(self, email: str) -> ServiceAccountKey:
        """private_key_data 는 base64 텍스트로 채워진다."""

    # IAM 정책
    @abstractmethod
    def get_iam_policy(self) -> IamPolicy:
        ...

    @abstractmethod
    def set_iam_policy(self, policy: IamPolicy) -> IamPolicy:
        """policy.etag 가 현재 값과 다르면 provider 가 거절한다."""

    # API / 결제
    @abstractmethod
    def enable_billing_api(self, project_id: str) -> None:
        ...

    @abstractmethod
    def enable_dns_api(self, project_id: str) -> None:
        ...

    @abstractmethod
    def link_billing_account(self, project_id: str, billing_account_id: str) -> None:
        ...


# (project_id, credentials) -> CloudGateway
GatewayFactory = Callable[[str, CloudCredentials], CloudGateway]


@contextmanager
def provider_call(stage: str, operation: str, **operands: Any) -> Iterator[None]:
    """
    블록 안에서 난 provider 예외를 ProviderCallError 로 감싼다.
    호출 단계와 인자를 함께 남겨 어디서 실패했는지 바로 보이게 한다.
    """
    try:
        yield
    except (GoogleAPICallError, RetryError) as e:
        raise ProviderCallError(stage, operation, operands, e) from e
