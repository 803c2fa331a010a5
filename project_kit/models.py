"""
models
------

reconcile 파이프라인이 주고받는 값 타입들.
provider SDK 타입은 여기에 등장하지 않는다. 변환은 gcp_gateway 가 담당한다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping


PLATFORM_LABEL = "hive.openshift.io/cluster-platform"
MANAGED_LABEL = "api.openshift.com/managed"


class ValidationOutcome(str, Enum):
    VALID = "Valid"
    MISSING_PROJECT_ID = "MissingProjectID"
    MISSING_REGION = "MissingRegion"
    REGION_NOT_SUPPORTED = "RegionNotSupported"
    NOT_THIS_PLATFORM = "NotThisPlatform"
    NOT_MANAGED = "NotManaged"
    ALREADY_INSTALLED = "AlreadyInstalled"

    @property
    def is_error(self) -> bool:
        return self not in (ValidationOutcome.VALID, ValidationOutcome.ALREADY_INSTALLED)


@dataclass(frozen=True)
class DeploymentRequest:
    namespace: str
    name: str
    project_id: str
    region: str
    platform_kind: str
    installed: bool = False
    managed: bool = False

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_cluster_deployment(
        cls,
        obj: Mapping[str, Any],
        platform_label: str = PLATFORM_LABEL,
        managed_label: str = MANAGED_LABEL,
    ) -> "DeploymentRequest":
        """
        cluster deployment 형태의 dict 에서 요청을 만든다.
        없는 키는 빈 문자열/False 로 채워서 검증 단계가 판단하게 둔다.
        """
        metadata = obj.get("metadata") or {}
        labels = metadata.get("labels") or {}
        spec = obj.get("spec") or {}
        gcp = (spec.get("platform") or {}).get("gcp") or {}

        return cls(
            namespace=metadata.get("namespace", ""),
            name=metadata.get("name", ""),
            project_id=gcp.get("projectID", "") or "",
            region=gcp.get("region", "") or "",
            platform_kind=labels.get(platform_label, "") or "",
            installed=bool(spec.get("installed", False)),
            managed=str(labels.get(managed_label, "")).lower() == "true",
        )


@dataclass(frozen=True)
class CloudCredentials:
    # 서비스 계정 JSON 내용. repr 로 새지 않게 숨긴다.
    service_account_info: Dict[str, Any] = field(repr=False)
    billing_account_id: str = ""


@dataclass(frozen=True)
class ServiceIdentity:
    name: str
    email: str
    display_name: str = ""

    @property
    def principal(self) -> str:
        return f"serviceAccount:{self.email}"


@dataclass
class Binding:
    role: str
    members: List[str] = field(default_factory=list)


@dataclass
class IamPolicy:
    bindings: List[Binding] = field(default_factory=list)
    etag: bytes = b""
    version: int = 0


@dataclass(frozen=True)
class ServiceAccountKey:
    name: str
    identity_email: str
    # provider 전송 인코딩(base64 텍스트) 그대로
    private_key_data: str = field(default="", repr=False)


@dataclass(frozen=True)
class GeneratedSecret:
    namespace: str
    name: str
    data: Dict[str, str] = field(default_factory=dict, repr=False)
