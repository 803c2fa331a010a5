from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, List, Tuple, FrozenSet

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.operator"]

DEFAULT_REQUIRED_ROLES: Tuple[str, ...] = (
    "roles/storage.admin",
    "roles/iam.serviceAccountUser",
    "roles/iam.serviceAccountKeyAdmin",
    "roles/iam.serviceAccountAdmin",
    "roles/iam.securityAdmin",
    "roles/dns.admin",
    "roles/compute.admin",
)

DEFAULT_SUPPORTED_REGIONS: FrozenSet[str] = frozenset(
    {
        "asia-east1",
        "asia-east2",
        "asia-northeast1",
        "asia-northeast2",
        "asia-south1",
        "asia-southeast1",
        "australia-southeast1",
        "europe-north1",
        "europe-west1",
        "europe-west2",
        "europe-west3",
        "europe-west4",
        "europe-west6",
        "northamerica-northeast1",
        "southamerica-east1",
        "us-central1",
        "us-east1",
        "us-east4",
        "us-west1",
        "us-west2",
    }
)


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_list(name: str, invalid: List[str]) -> Optional[List[str]]:
    raw = os.getenv(name)
    if raw is None:
        return None
    items = [p.strip() for p in raw.split(",") if p.strip()]
    if not items:
        invalid.append(name)
    return items


@dataclass(frozen=True)
class OperatorConfig:
    """
    프로세스 시작 시 한 번 만들어지고 이후 변경되지 않는 운영 설정.
    """

    # 조직 자격증명 secret
    operator_namespace: str = "gcp-project-operator"
    org_secret_name: str = "gcp-project-operator"
    credentials_key: str = "osServiceAccount.json"
    billing_account_key: str = "billingaccount"

    # 요청 네임스페이스에 만들어지는 결과 secret
    output_secret_name: str = "gcp"
    output_secret_key: str = "osServiceAccount.json"

    # 프로젝트/서비스 계정
    parent_folder_id: str = "240634451310"
    service_account_name: str = "osd-managed-admin"
    platform_tag: str = "gcp"

    required_roles: Tuple[str, ...] = DEFAULT_REQUIRED_ROLES
    supported_regions: FrozenSet[str] = DEFAULT_SUPPORTED_REGIONS

    # SecretManagerStore 를 쓸 때만 필요
    secret_manager_project: Optional[str] = None

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        defaults = cls()
        invalid: List[str] = []

        roles = _get_list("REQUIRED_ROLES", invalid)
        regions = _get_list("SUPPORTED_REGIONS", invalid)

        if invalid:
            raise ValueError(
                "환경변수 값이 비어 있습니다: " + ", ".join(sorted(set(invalid)))
            )

        return cls(
            operator_namespace=os.getenv("OPERATOR_NAMESPACE", defaults.operator_namespace),
            org_secret_name=os.getenv("ORG_SECRET_NAME", defaults.org_secret_name),
            credentials_key=os.getenv("ORG_CREDENTIALS_KEY", defaults.credentials_key),
            billing_account_key=os.getenv("ORG_BILLING_ACCOUNT_KEY", defaults.billing_account_key),
            output_secret_name=os.getenv("OUTPUT_SECRET_NAME", defaults.output_secret_name),
            output_secret_key=os.getenv("OUTPUT_SECRET_KEY", defaults.output_secret_key),
            parent_folder_id=os.getenv("PARENT_FOLDER_ID", defaults.parent_folder_id),
            service_account_name=os.getenv("SERVICE_ACCOUNT_NAME", defaults.service_account_name),
            platform_tag=os.getenv("PLATFORM_TAG", defaults.platform_tag),
            required_roles=tuple(roles) if roles else defaults.required_roles,
            supported_regions=frozenset(regions) if regions else defaults.supported_regions,
            secret_manager_project=os.getenv("SECRET_MANAGER_PROJECT") or None,
        )
