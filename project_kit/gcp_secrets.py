"""
gcp_secrets
-----------

네임스페이스 단위 secret 저장소와, 그 위에서 동작하는 두 단계를 담당하는 모듈.

- 조직 자격증명(서비스 계정 JSON + 결제 계정 ID) 읽기
- 새로 발급한 서비스 계정 키를 요청 네임스페이스의 secret 으로 게시

기본 저장소 구현은 Secret Manager 를 쓴다.
"""

from __future__ import annotations

import base64
import binascii
import json
from abc import ABC, abstractmethod
from typing import Dict, Optional

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import secretmanager

from .config import OperatorConfig
from .errors import CredentialUnavailable, SecretStoreError
from .logging_utils import get_logger
from .models import CloudCredentials, GeneratedSecret, ServiceAccountKey


logger = get_logger(__name__)


class SecretStore(ABC):
    """namespace/name 으로 찾는 문자열 필드 묶음 저장소."""

    @abstractmethod
    def exists(self, namespace: str, name: str) -> bool:
        ...

    @abstractmethod
    def read(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        """없으면 None."""

    @abstractmethod
    def create(self, secret: GeneratedSecret) -> None:
        """이미 있으면 SecretStoreError."""

    @abstractmethod
    def delete(self, namespace: str, name: str) -> bool:
        """삭제했으면 True, 원래 없었으면 False."""


class SecretManagerStore(SecretStore):
    """
    Secret Manager 위의 SecretStore.

    secret id 는 "{namespace}__{name}", 값은 필드 dict 를 JSON 으로 담은 최신 버전이다.
    """

    def __init__(self, project_id: str,
                 client: Optional[secretmanager.SecretManagerServiceClient] = None) -> None:
        self.project_id = project_id
        self._client = client

    @classmethod
    def from_config(cls, cfg: OperatorConfig) -> "SecretManagerStore":
        if not cfg.secret_manager_project:
            raise ValueError("SecretManagerStore 를 쓰려면 SECRET_MANAGER_PROJECT 환경변수가 필요합니다.")
        return cls(cfg.secret_manager_project)

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def _secret_name(self, namespace: str, name: str) -> str:
        return f"projects/{self.project_id}/secrets/{namespace}__{name}"

    def exists(self, namespace: str, name: str) -> bool:
        secret_name = self._secret_name(namespace, name)
        try:
            self.client.get_secret(name=secret_name)
            return True
        except NotFound:
            return False
        except GoogleAPICallError as e:
            raise SecretStoreError(f"Secret 조회 실패: {secret_name}: {e}") from e

    def read(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        secret_name = self._secret_name(namespace, name)
        try:
            response = self.client.access_secret_version(
                request={"name": f"{secret_name}/versions/latest"},
            )
        except NotFound:
            return None
        except GoogleAPICallError as e:
            raise SecretStoreError(f"Secret 읽기 실패: {secret_name}: {e}") from e

        try:
            data = json.loads(response.payload.data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SecretStoreError(f"Secret 내용이 JSON 이 아닙니다: {secret_name}") from e
        if not isinstance(data, dict):
            raise SecretStoreError(f"Secret 내용이 JSON object 가 아닙니다: {secret_name}")
        return {str(k): str(v) for k, v in data.items()}

    def create(self, secret: GeneratedSecret) -> None:
        parent = f"projects/{self.project_id}"
        secret_id = f"{secret.namespace}__{secret.name}"
        secret_name = f"{parent}/secrets/{secret_id}"
        payload = json.dumps(secret.data, sort_keys=True).encode("utf-8")
        try:
            self.client.create_secret(
                parent=parent,
                secret_id=secret_id,
                secret={
                    "replication": {"automatic": {}},
                },
            )
        except GoogleAPICallError as e:
            raise SecretStoreError(f"Secret 생성 실패: {secret_name}: {e}") from e

        try:
            self.client.add_secret_version(
                parent=secret_name,
                payload={"data": payload},
            )
        except GoogleAPICallError as e:
            # 빈 secret 이 남으면 exists() 가 True 가 되어 다음 reconcile 이 게시를 건너뛴다.
            self._rollback(secret_name)
            raise SecretStoreError(f"Secret 버전 추가 실패: {secret_name}: {e}") from e
        logger.info("Secret 을 생성했습니다: %s", secret_name)

    def _rollback(self, secret_name: str) -> None:
        try:
            self.client.delete_secret(name=secret_name)
            logger.info("버전 없는 Secret 을 삭제했습니다: %s", secret_name)
        except NotFound:
            pass
        except GoogleAPICallError as e:
            logger.error("버전 없는 Secret 삭제 실패, 수동 정리가 필요합니다: %s (%s)", secret_name, e)

    def delete(self, namespace: str, name: str) -> bool:
        secret_name = self._secret_name(namespace, name)
        try:
            self.client.delete_secret(name=secret_name)
        except NotFound:
            return False
        except GoogleAPICallError as e:
            raise SecretStoreError(f"Secret 삭제 실패: {secret_name}: {e}") from e
        return True


def resolve_credentials(store: SecretStore, cfg: OperatorConfig) -> CloudCredentials:
    """
    operator 네임스페이스의 조직 secret 에서 자격증명과 결제 계정 ID 를 읽는다.
    자격증명은 밖에서 교체될 수 있으므로 캐시하지 않고 매번 읽는다.
    """
    namespace, name = cfg.operator_namespace, cfg.org_secret_name
    logger.info("조직 자격증명 secret 읽기: %s/%s", namespace, name)

    data = store.read(namespace, name)
    if data is None:
        raise CredentialUnavailable(namespace, name, "secret 이 없습니다")

    auth_blob = data.get(cfg.credentials_key)
    if not auth_blob:
        raise CredentialUnavailable(namespace, name, f"{cfg.credentials_key} 필드가 없습니다")

    billing_account = (data.get(cfg.billing_account_key) or "").strip()
    if not billing_account:
        raise CredentialUnavailable(namespace, name, f"{cfg.billing_account_key} 필드가 없습니다")

    try:
        info = json.loads(auth_blob)
    except ValueError as e:
        raise CredentialUnavailable(
            namespace, name, f"{cfg.credentials_key} 가 JSON 이 아닙니다"
        ) from e
    if not isinstance(info, dict):
        raise CredentialUnavailable(
            namespace, name, f"{cfg.credentials_key} 가 JSON object 가 아닙니다"
        )

    return CloudCredentials(service_account_info=info, billing_account_id=billing_account)


def output_secret_exists(store: SecretStore, namespace: str, cfg: OperatorConfig) -> bool:
    return store.exists(namespace, cfg.output_secret_name)


def publish_key_secret(
    store: SecretStore,
    namespace: str,
    key: ServiceAccountKey,
    cfg: OperatorConfig,
) -> GeneratedSecret:
    """
    base64 로 온 키를 풀어서 요청 네임스페이스에 결과 secret 으로 만든다.
    """
    try:
        private_key = base64.b64decode(key.private_key_data, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise SecretStoreError(
            f"서비스 계정 키를 디코딩할 수 없습니다: {key.identity_email}"
        ) from e

    secret = GeneratedSecret(
        namespace=namespace,
        name=cfg.output_secret_name,
        data={cfg.output_secret_key: private_key},
    )
    store.create(secret)
    logger.info("서비스 계정 키 secret 을 게시했습니다: %s/%s", namespace, secret.name)
    return secret
