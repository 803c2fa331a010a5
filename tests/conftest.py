"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 project_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, project_kit 을 import 하기 전에
repo root 를 sys.path 최상단에 고정한다. (pytest_configure 는 conftest import 뒤에 불리므로 늦다)

provider 와 secret 저장소는 아래 in-memory 더블로 대체한다.
"""

from __future__ import annotations

import base64
import copy
import json
import os
import sys
from typing import Dict, List, Optional, Set, Tuple

import pytest
from google.api_core.exceptions import Conflict, NotFound


_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT in sys.path:
    sys.path.remove(_REPO_ROOT)
sys.path.insert(0, _REPO_ROOT)


from project_kit.config import OperatorConfig  # noqa: E402
from project_kit.errors import SecretStoreError  # noqa: E402
from project_kit.gateway import CloudGateway  # noqa: E402
from project_kit.gcp_secrets import SecretStore  # noqa: E402
from project_kit.models import (  # noqa: E402
    CloudCredentials,
    DeploymentRequest,
    GeneratedSecret,
    IamPolicy,
    ServiceAccountKey,
    ServiceIdentity,
)


ORG_SERVICE_ACCOUNT = {"type": "service_account", "project_id": "org-admin"}
BILLING_ACCOUNT = "0123AB-4567CD-89EF01"


class FakeGateway(CloudGateway):
    """
    CloudGateway 의 in-memory 구현. 호출된 메서드 이름을 calls 에 순서대로 남긴다.

    failures 에 메서드 이름 -> 예외를 넣으면 그 호출에서 예외를 던진다.
    sticky_keys 에 들어 있는 키 이름은 삭제 요청을 받아도 남는다(시스템 관리 키 흉내).
    """

    def __init__(self, project_id: str = "proj-1") -> None:
        self.project_id = project_id
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.project_exists = False
        self.accounts: Dict[str, ServiceIdentity] = {}
        self.keys: Dict[str, List[str]] = {}
        self.sticky_keys: Set[str] = set()
        self.policy = IamPolicy(etag=b"etag-0", version=1)
        self.policy_writes = 0
        self.enabled_apis: List[str] = []
        self.billing_links: Dict[str, str] = {}
        self._key_counter = 0

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def _email(self, name: str) -> str:
        return f"{name}@{self.project_id}.iam.gserviceaccount.com"

    def add_keys(self, email: str, count: int) -> List[str]:
        names = []
        for _ in range(count):
            self._key_counter += 1
            name = f"projects/{self.project_id}/serviceAccounts/{email}/keys/k{self._key_counter}"
            self.keys.setdefault(email, []).append(name)
            names.append(name)
        return names

    def create_project(self, parent_folder_id: str):
        self._record("create_project")
        if self.project_exists:
            raise Conflict("project already exists")
        self.project_exists = True
        return {"operation": f"create/{self.project_id}", "parent": parent_folder_id}

    def delete_project(self) -> None:
        self._record("delete_project")
        if not self.project_exists:
            raise NotFound("project not found")
        self.project_exists = False

    def get_service_account(self, name: str) -> ServiceIdentity:
        self._record("get_service_account")
        email = self._email(name)
        if email not in self.accounts:
            raise NotFound(f"service account {email} not found")
        return self.accounts[email]

    def create_service_account(self, name: str, display_name: str) -> ServiceIdentity:
        self._record("create_service_account")
        email = self._email(name)
        if email in self.accounts:
            raise Conflict(f"service account {email} already exists")
        identity = ServiceIdentity(name=name, email=email, display_name=display_name)
        self.accounts[email] = identity
        return identity

    def delete_service_account(self, email: str) -> None:
        self._record("delete_service_account")
        if email not in self.accounts:
            raise NotFound(f"service account {email} not found")
        del self.accounts[email]
        self.keys.pop(email, None)

    def list_service_account_keys(self, email: str) -> List[ServiceAccountKey]:
        self._record("list_service_account_keys")
        return [ServiceAccountKey(name=n, identity_email=email) for n in self.keys.get(email, [])]

    def delete_service_account_key(self, key_name: str) -> None:
        self._record("delete_service_account_key")
        if key_name in self.sticky_keys:
            return
        for names in self.keys.values():
            if key_name in names:
                names.remove(key_name)
                return
        raise NotFound(f"key {key_name} not found")

    def create_service_account_key(self, email: str) -> ServiceAccountKey:
        self._record("create_service_account_key")
        name = self.add_keys(email, 1)[0]
        payload = json.dumps({"type": "service_account", "client_email": email, "key": name})
        return ServiceAccountKey(
            name=name,
            identity_email=email,
            private_key_data=base64.b64encode(payload.encode("utf-8")).decode("ascii"),
        )

    def get_iam_policy(self) -> IamPolicy:
        self._record("get_iam_policy")
        return copy.deepcopy(self.policy)

    def set_iam_policy(self, policy: IamPolicy) -> IamPolicy:
        self._record("set_iam_policy")
        self.policy_writes += 1
        self.policy = copy.deepcopy(policy)
        self.policy.etag = f"etag-{self.policy_writes}".encode("ascii")
        return copy.deepcopy(self.policy)

    def enable_billing_api(self, project_id: str) -> None:
        self._record("enable_billing_api")
        self.enabled_apis.append("cloudbilling.googleapis.com")

    def enable_dns_api(self, project_id: str) -> None:
        self._record("enable_dns_api")
        self.enabled_apis.append("dns.googleapis.com")

    def link_billing_account(self, project_id: str, billing_account_id: str) -> None:
        self._record("link_billing_account")
        self.billing_links[project_id] = billing_account_id


class InMemorySecretStore(SecretStore):
    def __init__(self) -> None:
        self.secrets: Dict[Tuple[str, str], Dict[str, str]] = {}

    def exists(self, namespace: str, name: str) -> bool:
        return (namespace, name) in self.secrets

    def read(self, namespace: str, name: str) -> Optional[Dict[str, str]]:
        data = self.secrets.get((namespace, name))
        return dict(data) if data is not None else None

    def create(self, secret: GeneratedSecret) -> None:
        key = (secret.namespace, secret.name)
        if key in self.secrets:
            raise SecretStoreError(f"secret already exists: {secret.namespace}/{secret.name}")
        self.secrets[key] = dict(secret.data)

    def delete(self, namespace: str, name: str) -> bool:
        return self.secrets.pop((namespace, name), None) is not None

    def in_namespace(self, namespace: str) -> List[str]:
        return [name for (ns, name) in self.secrets if ns == namespace]


class GatewayFactoryRecorder:
    """gateway_factory 대역. 만들어진 횟수와 받은 자격증명을 기록한다."""

    def __init__(self, gateway: FakeGateway) -> None:
        self.gateway = gateway
        self.invocations: List[Tuple[str, CloudCredentials]] = []

    def __call__(self, project_id: str, creds: CloudCredentials) -> FakeGateway:
        self.invocations.append((project_id, creds))
        self.gateway.project_id = project_id
        return self.gateway


@pytest.fixture
def cfg() -> OperatorConfig:
    return OperatorConfig()


@pytest.fixture
def make_request():
    def _make(**overrides) -> DeploymentRequest:
        fields = {
            "namespace": "uhc-prod-abc",
            "name": "cluster-1",
            "project_id": "proj-1",
            "region": "us-east1",
            "platform_kind": "gcp",
            "installed": False,
            "managed": True,
        }
        fields.update(overrides)
        return DeploymentRequest(**fields)

    return _make


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def gateway_factory(fake_gateway: FakeGateway) -> GatewayFactoryRecorder:
    return GatewayFactoryRecorder(fake_gateway)


@pytest.fixture
def empty_store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def secret_store(cfg: OperatorConfig) -> InMemorySecretStore:
    store = InMemorySecretStore()
    store.secrets[(cfg.operator_namespace, cfg.org_secret_name)] = {
        cfg.credentials_key: json.dumps(ORG_SERVICE_ACCOUNT),
        cfg.billing_account_key: BILLING_ACCOUNT,
    }
    return store
