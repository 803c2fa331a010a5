import base64
from types import SimpleNamespace

from google.iam.v1 import policy_pb2

from project_kit.gcp_gateway import GoogleCloudGateway, policy_from_pb, policy_to_pb
from project_kit.models import Binding, IamPolicy


class _Recorder:
    """호출된 메서드와 인자를 기록하고, responses 에 넣어둔 값을 돌려준다."""

    def __init__(self, **responses) -> None:
        self.requests = []
        self._responses = responses

    def __getattr__(self, name):
        def call(**kwargs):
            self.requests.append((name, kwargs))
            return self._responses.get(name)

        return call


def test_policy_conversion_keeps_bindings_and_etag() -> None:
    pb = policy_pb2.Policy(
        version=3,
        etag=b"abc",
        bindings=[policy_pb2.Binding(role="roles/owner", members=["user:a@example.com"])],
    )

    policy = policy_from_pb(pb)

    assert policy == IamPolicy(
        bindings=[Binding(role="roles/owner", members=["user:a@example.com"])],
        etag=b"abc",
        version=3,
    )
    assert policy_to_pb(policy) == pb


def test_create_key_returns_base64_text() -> None:
    raw = b'{"type": "service_account"}'
    iam = _Recorder(
        create_service_account_key=SimpleNamespace(name="keys/k1", private_key_data=raw),
    )
    gateway = GoogleCloudGateway("proj-1", iam_client=iam)

    key = gateway.create_service_account_key("sa@proj-1.iam.gserviceaccount.com")

    assert base64.b64decode(key.private_key_data) == raw
    assert iam.requests == [
        (
            "create_service_account_key",
            {"request": {"name": "projects/proj-1/serviceAccounts/sa@proj-1.iam.gserviceaccount.com"}},
        )
    ]


def test_get_service_account_uses_project_scoped_email() -> None:
    iam = _Recorder(
        get_service_account=SimpleNamespace(
            email="osd-managed-admin@proj-1.iam.gserviceaccount.com",
            display_name="osd-managed-admin",
        ),
    )
    gateway = GoogleCloudGateway("proj-1", iam_client=iam)

    identity = gateway.get_service_account("osd-managed-admin")

    assert identity.email == "osd-managed-admin@proj-1.iam.gserviceaccount.com"
    name = iam.requests[0][1]["request"]["name"]
    assert name == "projects/proj-1/serviceAccounts/osd-managed-admin@proj-1.iam.gserviceaccount.com"


def test_enable_apis_and_billing_requests() -> None:
    usage = _Recorder()
    billing = _Recorder()
    gateway = GoogleCloudGateway("proj-1", service_usage_client=usage, billing_client=billing)

    gateway.enable_billing_api("proj-1")
    gateway.enable_dns_api("proj-1")
    gateway.link_billing_account("proj-1", "0123AB")

    assert [r[1]["request"]["name"] for r in usage.requests] == [
        "projects/proj-1/services/cloudbilling.googleapis.com",
        "projects/proj-1/services/dns.googleapis.com",
    ]
    link = billing.requests[0][1]["request"]
    assert link["name"] == "projects/proj-1"
    assert link["project_billing_info"] == {"billing_account_name": "billingAccounts/0123AB"}


def test_create_project_targets_parent_folder() -> None:
    projects = _Recorder(create_project="operation")
    gateway = GoogleCloudGateway("proj-1", projects_client=projects)

    assert gateway.create_project("240634451310") == "operation"

    project = projects.requests[0][1]["project"]
    assert project.project_id == "proj-1"
    assert project.parent == "folders/240634451310"
