"""
project_kit
-----------

DeploymentRequest 하나를 받아 GCP 프로젝트를 목표 상태로 맞추는 reconcile 패키지.
프로젝트 생성, API/결제 활성화, 관리용 서비스 계정과 IAM 역할, 키 발급,
결과 secret 게시를 순서대로 수행하며, 몇 번을 다시 실행해도 같은 결과가 되도록 한다.
"""

__all__ = [
    "config",
    "orchestrator",
]
