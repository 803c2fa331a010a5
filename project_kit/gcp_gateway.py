"""
gcp_gateway
-----------

CloudGateway 의 실제 구현. google-cloud 클라이언트 라이브러리로
프로젝트, 서비스 계정/키, IAM 정책, API 활성화, 결제 연결을 호출한다.

클라이언트는 처음 쓸 때 만든다. 테스트에서는 생성자에 직접 넘길 수 있다.
"""

from __future__ import annotations

import base64
from typing import Any, List, Optional

from google.cloud import billing_v1
from google.cloud import iam_admin_v1
from google.cloud import resourcemanager_v3
from google.cloud import service_usage_v1
from google.iam.v1 import policy_pb2
from google.oauth2 import service_account

from .gateway import CloudGateway
from .logging_utils import get_logger
from .models import (
    Binding,
    CloudCredentials,
    IamPolicy,
    ServiceAccountKey,
    ServiceIdentity,
)


logger = get_logger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

BILLING_API = "cloudbilling.googleapis.com"
DNS_API = "dns.googleapis.com"


def policy_from_pb(pb: policy_pb2.Policy) -> IamPolicy:
    return IamPolicy(
        bindings=[Binding(role=b.role, members=list(b.members)) for b in pb.bindings],
        etag=pb.etag,
        version=pb.version,
    )


def policy_to_pb(policy: IamPolicy) -> policy_pb2.Policy:
    return policy_pb2.Policy(
        version=policy.version,
        etag=policy.etag,
        bindings=[
            policy_pb2.Binding(role=b.role, members=list(b.members))
            for b in policy.bindings
        ],
    )


class GoogleCloudGateway(CloudGateway):
    """하나의 project_id 와 서비스 계정 자격증명에 묶인 gateway."""

    def __init__(
        self,
        project_id: str,
        credentials: Any = None,
        *,
        projects_client: Optional[resourcemanager_v3.ProjectsClient] = None,
        iam_client: Optional[iam_admin_v1.IAMClient] = None,
        service_usage_client: Optional[service_usage_v1.ServiceUsageClient] = None,
        billing_client: Optional[billing_v1.CloudBillingClient] = None,
    ) -> None:
        self.project_id = project_id
        self._credentials = credentials
        self._projects = projects_client
        self._iam = iam_client
        self._service_usage = service_usage_client
        self._billing = billing_client

    @classmethod
    def from_credentials(cls, project_id: str, creds: CloudCredentials) -> "GoogleCloudGateway":
        credentials = service_account.Credentials.from_service_account_info(
            creds.service_account_info,
            scopes=[CLOUD_PLATFORM_SCOPE],
        )
        return cls(project_id, credentials)

    @property
    def projects(self) -> resourcemanager_v3.ProjectsClient:
        if self._projects is None:
            self._projects = resourcemanager_v3.ProjectsClient(credentials=self._credentials)
        return self._projects

    @property
    def iam(self) -> iam_admin_v1.IAMClient:
        if self._iam is None:
            self._iam = iam_admin_v1.IAMClient(credentials=self._credentials)
        return self._iam

    @property
    def service_usage(self) -> service_usage_v1.ServiceUsageClient:
        if self._service_usage is None:
            self._service_usage = service_usage_v1.ServiceUsageClient(
                credentials=self._credentials,
            )
        return self._service_usage

    @property
    def billing(self) -> billing_v1.CloudBillingClient:
        if self._billing is None:
            self._billing = billing_v1.CloudBillingClient(credentials=self._credentials)
        return self._billing

    @property
    def _resource(self) -> str:
        return f"projects/{self.project_id}"

    def _account_resource(self, email: str) -> str:
        return f"{self._resource}/serviceAccounts/{email}"

    def _email_for(self, name: str) -> str:
        return f"{name}@{self.project_id}.iam.gserviceaccount.com"

    # 프로젝트
    def create_project(self, parent_folder_id: str) -> Any:
        project = resourcemanager_v3.Project(
            project_id=self.project_id,
            display_name=self.project_id,
            parent=f"folders/{parent_folder_id}",
        )
        logger.debug("create_project: %s (parent=folders/%s)", self.project_id, parent_folder_id)
        return self.projects.create_project(project=project)

    def delete_project(self) -> None:
        self.projects.delete_project(name=self._resource)

    # 서비스 계정
    def get_service_account(self, name: str) -> ServiceIdentity:
        sa = self.iam.get_service_account(
            request={"name": self._account_resource(self._email_for(name))},
        )
        return ServiceIdentity(name=name, email=sa.email, display_name=sa.display_name)

    def create_service_account(self, name: str, display_name: str) -> ServiceIdentity:
        sa = self.iam.create_service_account(
            request={
                "name": self._resource,
                "account_id": name,
                "service_account": {"display_name": display_name},
            },
        )
        return ServiceIdentity(name=name, email=sa.email, display_name=sa.display_name)

    def delete_service_account(self, email: str) -> None:
        self.iam.delete_service_account(request={"name": self._account_resource(email)})

    # 키
    def list_service_account_keys(self, email: str) -> List[ServiceAccountKey]:
        response = self.iam.list_service_account_keys(
            request={"name": self._account_resource(email)},
        )
        return [ServiceAccountKey(name=k.name, identity_email=email) for k in response.keys]

    def delete_service_account_key(self, key_name: str) -> None:
        self.iam.delete_service_account_key(request={"name": key_name})

    def create_service_account_key(self, email: str) -> ServiceAccountKey:
        key = self.iam.create_service_account_key(
            request={"name": self._account_resource(email)},
        )
        # gRPC 응답은 원본 바이트라서 REST 와 같은 base64 텍스트로 맞춘다.
        return ServiceAccountKey(
            name=key.name,
            identity_email=email,
            private_key_data=base64.b64encode(key.private_key_data).decode("ascii"),
        )

    # IAM 정책
    def get_iam_policy(self) -> IamPolicy:
        pb = self.projects.get_iam_policy(request={"resource": self._resource})
        return policy_from_pb(pb)

    def set_iam_policy(self, policy: IamPolicy) -> IamPolicy:
        pb = self.projects.set_iam_policy(
            request={"resource": self._resource, "policy": policy_to_pb(policy)},
        )
        return policy_from_pb(pb)

    # API / 결제
    def _enable_service(self, project_id: str, service: str) -> None:
        # operation 은 기다리지 않는다. 이미 활성화된 경우에도 provider 가 받아준다.
        self.service_usage.enable_service(
            request={"name": f"projects/{project_id}/services/{service}"},
        )

    def enable_billing_api(self, project_id: str) -> None:
        self._enable_service(project_id, BILLING_API)

    def enable_dns_api(self, project_id: str) -> None:
        self._enable_service(project_id, DNS_API)

    def link_billing_account(self, project_id: str, billing_account_id: str) -> None:
        self.billing.update_project_billing_info(
            request={
                "name": f"projects/{project_id}",
                "project_billing_info": {
                    "billing_account_name": f"billingAccounts/{billing_account_id}",
                },
            },
        )
