"""Shared pytest fixtures for recvault tests.

The relocation and identity workflows run against the in-memory object
store and an in-memory identity service that enforces IAM's rule that a
user with keys or policies attached cannot be deleted.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from recvault.models import AccessKey, AttachedPolicy, PrincipalSummary, ProbeResult
from recvault.storage.memory import MemoryObjectStore


def client_error(code: str, message: str = "error") -> ClientError:
    """Create a botocore ClientError with the given error code."""
    return ClientError({"Error": {"Code": code, "Message": message}}, "TestOperation")


class _Pages:
    """Async iterator over canned paginator pages."""

    def __init__(self, pages):
        self._pages = list(pages)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._pages:
            raise StopAsyncIteration
        return self._pages.pop(0)


def paginator_of(pages) -> MagicMock:
    """A mock aiobotocore paginator whose paginate() yields ``pages``."""
    paginator = MagicMock()
    paginator.paginate = MagicMock(return_value=_Pages(pages))
    return paginator


class FakeIdentityService:
    """IdentityService held in dictionaries, with a call journal.

    ``fail_on`` maps a method name to the exception it should raise.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_on: dict[str, Exception] = {}
        self.closed = False
        self._key_counter = 0

    def _enter(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.fail_on:
            raise self.fail_on[method]

    def _user(self, name: str) -> dict:
        if name not in self.users:
            raise client_error("NoSuchEntity", f"user {name}")
        return self.users[name]

    def add_user(self, name: str, policies=(), keys=()) -> None:
        self.users[name] = {
            "policies": [AttachedPolicy(arn=arn, name=arn.rsplit("/", 1)[-1]) for arn in policies],
            "keys": [AccessKey(key_id=k) for k in keys],
        }

    def method_calls(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def init(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    async def list_principals(self) -> list[PrincipalSummary]:
        self._enter("list_principals")
        return [
            PrincipalSummary(name=n, user_id=f"AID{n.upper()}", arn=f"arn:aws:iam::123:user/{n}")
            for n in sorted(self.users)
        ]

    async def principal_exists(self, name: str) -> bool:
        self._enter("principal_exists", name)
        return name in self.users

    async def create_principal(self, name: str) -> PrincipalSummary:
        self._enter("create_principal", name)
        if name in self.users:
            raise client_error("EntityAlreadyExists")
        self.users[name] = {"policies": [], "keys": []}
        return PrincipalSummary(name=name)

    async def delete_principal(self, name: str) -> None:
        self._enter("delete_principal", name)
        user = self._user(name)
        if user["policies"] or user["keys"]:
            raise client_error("DeleteConflict", "user has attached resources")
        del self.users[name]

    async def attach_policy(self, name: str, policy_arn: str) -> None:
        self._enter("attach_policy", name, policy_arn)
        self._user(name)["policies"].append(
            AttachedPolicy(arn=policy_arn, name=policy_arn.rsplit("/", 1)[-1])
        )

    async def detach_policy(self, name: str, policy_arn: str) -> None:
        self._enter("detach_policy", name, policy_arn)
        user = self._user(name)
        user["policies"] = [p for p in user["policies"] if p.arn != policy_arn]

    async def list_attached_policies(self, name: str) -> list[AttachedPolicy]:
        self._enter("list_attached_policies", name)
        return list(self._user(name)["policies"])

    async def create_access_key(self, name: str) -> AccessKey:
        self._enter("create_access_key", name)
        self._key_counter += 1
        key_id = f"AKIA{self._key_counter:04d}"
        self._user(name)["keys"].append(AccessKey(key_id=key_id))
        return AccessKey(key_id=key_id, secret=f"secret-{self._key_counter}")

    async def list_access_keys(self, name: str) -> list[AccessKey]:
        self._enter("list_access_keys", name)
        return [AccessKey(key_id=k.key_id, status=k.status) for k in self._user(name)["keys"]]

    async def delete_access_key(self, name: str, key_id: str) -> None:
        self._enter("delete_access_key", name, key_id)
        user = self._user(name)
        user["keys"] = [k for k in user["keys"] if k.key_id != key_id]


class FakeProber:
    """MediaProber returning canned results per locator."""

    def __init__(self, results: dict | None = None, default: ProbeResult | None = None) -> None:
        self.results = results or {}
        self.default = default
        self.locators: list[str] = []

    async def probe(self, locator: str) -> ProbeResult:
        self.locators.append(locator)
        result = self.results.get(locator, self.default)
        if isinstance(result, Exception):
            raise result
        if result is None:
            from recvault.errors import MetadataUnavailable

            raise MetadataUnavailable(locator, "no creation_time tag")
        return result


class FakeClassifier:
    """Classifier returning a decision (or raising) per owner candidate."""

    def __init__(self, decisions: dict) -> None:
        self.decisions = decisions
        self.requests: list[tuple[str, str]] = []

    async def classify(self, owner_candidate: str, start_label: str):
        self.requests.append((owner_candidate, start_label))
        decision = self.decisions[owner_candidate]
        if isinstance(decision, Exception):
            raise decision
        return decision

    async def close(self) -> None:
        pass


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def identity() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2024-03-10 09:00:00 UTC."""
    moment = datetime(2024, 3, 10, 9, 0, 0, tzinfo=timezone.utc)
    return lambda: moment
