"""
Tests for the identity reconciliation state machine.

Two layers are covered:

1. The pure transition function: every legal edge, and rejection of
   illegal ones, without any I/O.

2. The async runners against an in-memory fake provider and fake document
   store, so every branch (created, restored, denied, incorrect credential,
   failed) is driven deterministically:
     - validation failures never reach the provider
     - repeated registration never produces a second profile
     - a banned identity is always DENIED and signed out
     - recovery leaves createdAt untouched and sets restoredAt
"""

import asyncio
import itertools

import pytest

from app.exceptions import (
    AccessCodeMismatchError,
    AccountBannedError,
    BadCredentialError,
    IdentityExistsError,
    IncorrectCredentialError,
    PasswordMismatchError,
    ProviderFailureError,
    StoreTimeoutError,
    StoreUnavailableError,
    WeakPasswordError,
)
from app.identity.provider import Identity
from app.models.identity import AuthProvider
from app.services.profiles import ProfileUpsert
from app.services.reconciler import (
    IdentityReconciler,
    InvalidTransitionError,
    ReconcileEvent as E,
    ReconcileState as S,
    TERMINAL_STATES,
    transition,
)

CODE = "ADMIN2025"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeProvider:
    """In-memory identity provider recording every call."""

    def __init__(self):
        self.accounts: dict[str, dict] = {}
        self.federated: dict[str, str] = {}
        self.calls: list[str] = []
        self.signed_out: list[Identity] = []
        self.create_error: Exception | None = None
        self.login_error: Exception | None = None
        self._ids = itertools.count(1)

    def _identity(self, email: str, provider=AuthProvider.EMAIL) -> Identity:
        account = self.accounts[email]
        return Identity(
            uid=account["uid"],
            email=email,
            display_name=account.get("name"),
            provider=provider,
            session_id=f"session-{next(self._ids)}",
        )

    def seed(self, email: str, password: str) -> str:
        uid = f"uid-{email}"
        self.accounts[email] = {"uid": uid, "password": password}
        return uid

    async def create_identity(self, email, password, display_name=None):
        self.calls.append("create_identity")
        if self.create_error is not None:
            raise self.create_error
        if email in self.accounts:
            raise IdentityExistsError(email)
        self.accounts[email] = {"uid": f"uid-{email}", "password": password, "name": display_name}
        return self._identity(email)

    async def login(self, email, password):
        self.calls.append("login")
        if self.login_error is not None:
            raise self.login_error
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise BadCredentialError()
        return self._identity(email)

    async def sign_in_federated(self, credential):
        self.calls.append("sign_in_federated")
        email = self.federated.get(credential)
        if email is None:
            raise ProviderFailureError("Federated sign-in failed: bad credential")
        if email not in self.accounts:
            self.accounts[email] = {"uid": f"uid-{email}", "password": None, "name": "Fed User"}
        return self._identity(email, provider=AuthProvider.FEDERATED)

    async def sign_out(self, identity):
        self.calls.append("sign_out")
        self.signed_out.append(identity)


class MemoryStore:
    """In-memory document store with the same merge-write semantics."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self.writes = 0

    async def get_document(self, collection, doc_id):
        record = self.collections.get(collection, {}).get(doc_id)
        return dict(record) if record is not None else None

    async def merge_write(self, collection, doc_id, fields, defaults=None):
        self.writes += 1
        docs = self.collections.setdefault(collection, {})
        merged = {**docs.get(doc_id, {}), **fields}
        for key, value in (defaults or {}).items():
            merged.setdefault(key, value)
        docs[doc_id] = merged
        return dict(merged)

    async def query_where(self, collection, field, value):
        return [
            {"id": doc_id, **data}
            for doc_id, data in self.collections.get(collection, {}).items()
            if data.get(field) == value
        ]


class HangingStore(MemoryStore):
    """Writes never resolve."""

    async def merge_write(self, collection, doc_id, fields, defaults=None):
        await asyncio.Event().wait()


class FrozenStore(HangingStore):
    """Reads never resolve either."""

    async def get_document(self, collection, doc_id):
        await asyncio.Event().wait()


class UnreadableStore(MemoryStore):
    async def get_document(self, collection, doc_id):
        raise StoreUnavailableError(f"read {collection}/{doc_id}")


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def reconciler(provider, store):
    return IdentityReconciler(provider, ProfileUpsert(store, timeout=1.0))


async def register(reconciler, email="a@example.com", password="secret1",
                   confirm=None, supplied=CODE, expected=CODE):
    return await reconciler.register_or_recover(
        email=email,
        password=password,
        confirm_password=confirm if confirm is not None else password,
        supplied_code=supplied,
        expected_code=expected,
    )


# ---------------------------------------------------------------------------
# Pure transition function
# ---------------------------------------------------------------------------

class TestTransition:
    @pytest.mark.parametrize(
        "state, event, expected",
        [
            (S.IDLE, E.SUBMITTED, S.VALIDATING),
            (S.VALIDATING, E.VALIDATED, S.CREATING),
            (S.VALIDATING, E.FEDERATED_VALIDATED, S.AUTHENTICATING),
            (S.CREATING, E.IDENTITY_CREATED, S.CREATED),
            (S.CREATING, E.IDENTITY_EXISTS, S.CONFLICT_DETECTED),
            (S.CREATING, E.PROVIDER_FAILED, S.FAILED),
            (S.CONFLICT_DETECTED, E.RECOVERY_STARTED, S.RECOVERING_LOGIN),
            (S.RECOVERING_LOGIN, E.LOGIN_SUCCEEDED, S.BAN_CHECK),
            (S.RECOVERING_LOGIN, E.LOGIN_REJECTED, S.INCORRECT_CREDENTIAL),
            (S.AUTHENTICATING, E.AUTHENTICATED, S.BAN_CHECK),
            (S.BAN_CHECK, E.PROFILE_ACTIVE, S.RESTORED),
            (S.BAN_CHECK, E.PROFILE_BANNED, S.DENIED),
            (S.BAN_CHECK, E.PROFILE_UNREADABLE, S.FAILED),
        ],
    )
    def test_legal_edges(self, state, event, expected):
        assert transition(state, event) == expected

    def test_conflict_cannot_skip_recovery_login(self):
        """A conflict never jumps straight to a restore."""
        with pytest.raises(InvalidTransitionError):
            transition(S.CONFLICT_DETECTED, E.PROFILE_ACTIVE)

    def test_federated_flow_has_no_incorrect_credential_branch(self):
        with pytest.raises(InvalidTransitionError):
            transition(S.AUTHENTICATING, E.LOGIN_REJECTED)

    def test_terminal_states_have_no_exits(self):
        for state in TERMINAL_STATES:
            for event in E:
                with pytest.raises(InvalidTransitionError):
                    transition(state, event)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    async def test_wrong_access_code(self, reconciler, provider):
        with pytest.raises(AccessCodeMismatchError):
            await register(reconciler, supplied="WRONG")
        assert provider.calls == []

    async def test_password_mismatch(self, reconciler, provider):
        with pytest.raises(PasswordMismatchError):
            await register(reconciler, password="secret1", confirm="secret2")
        assert provider.calls == []

    async def test_weak_password(self, reconciler, provider):
        with pytest.raises(WeakPasswordError):
            await register(reconciler, password="12345")
        assert provider.calls == []

    async def test_code_checked_before_passwords(self, reconciler):
        """Both wrong: the access code error wins."""
        with pytest.raises(AccessCodeMismatchError):
            await register(reconciler, supplied="WRONG", password="1", confirm="2")


# ---------------------------------------------------------------------------
# Email register-or-recover
# ---------------------------------------------------------------------------

class TestRegisterOrRecover:
    async def test_new_email_is_created(self, reconciler, store):
        result = await register(reconciler)

        assert result.outcome == S.CREATED
        assert result.profile_synced is True
        assert result.trace == [S.IDLE, S.VALIDATING, S.CREATING, S.CREATED]

        profile = store.collections["users"][result.identity.uid]
        assert profile["role"] == "admin"
        assert profile["status"] == "active"
        assert profile["authProvider"] == "email"
        assert "createdAt" in profile
        assert "restoredAt" not in profile

    async def test_repeat_with_same_password_restores(self, reconciler, store):
        first = await register(reconciler)
        created_at = store.collections["users"][first.identity.uid]["createdAt"]

        second = await register(reconciler)

        assert second.outcome == S.RESTORED
        assert second.identity.uid == first.identity.uid
        profile = store.collections["users"][first.identity.uid]
        assert profile["createdAt"] == created_at
        assert "restoredAt" in profile
        assert len(store.collections["users"]) == 1

    async def test_repeated_calls_never_duplicate_profiles(self, reconciler, store):
        for _ in range(4):
            await register(reconciler)
        assert len(store.collections["users"]) == 1

    async def test_repeat_with_wrong_password_is_incorrect_credential(self, reconciler, store):
        first = await register(reconciler, password="secret1")
        before = dict(store.collections["users"][first.identity.uid])
        writes_before = store.writes

        result = await register(reconciler, password="other-pass")

        assert result.outcome == S.INCORRECT_CREDENTIAL
        assert store.collections["users"][first.identity.uid] == before
        assert store.writes == writes_before
        with pytest.raises(IncorrectCredentialError):
            result.raise_for_outcome()

    async def test_identity_without_profile_is_repaired(self, reconciler, provider, store):
        """Crash between identity creation and profile write."""
        uid = provider.seed("half@example.com", "secret1")

        result = await register(reconciler, email="half@example.com")

        assert result.outcome == S.RESTORED
        profile = store.collections["users"][uid]
        assert profile["role"] == "admin"
        assert profile["status"] == "active"
        assert "restoredAt" in profile

    async def test_demoted_profile_is_promoted_back(self, reconciler, provider, store):
        uid = provider.seed("rider@example.com", "secret1")
        await store.merge_write("users", uid, {"uid": uid, "role": "user", "status": "active"})

        result = await register(reconciler, email="rider@example.com")

        assert result.outcome == S.RESTORED
        assert store.collections["users"][uid]["role"] == "admin"

    async def test_banned_identity_is_denied_and_signed_out(self, reconciler, provider, store):
        first = await register(reconciler)
        await store.merge_write("users", first.identity.uid, {"status": "banned"})
        writes_before = store.writes

        result = await register(reconciler)

        assert result.outcome == S.DENIED
        assert store.collections["users"][first.identity.uid]["status"] == "banned"
        assert store.writes == writes_before
        assert provider.signed_out[-1].uid == first.identity.uid
        with pytest.raises(AccountBannedError):
            result.raise_for_outcome()

    async def test_ban_then_unban_flips_recovery_outcome(self, reconciler, store):
        first = await register(reconciler)
        uid = first.identity.uid

        await store.merge_write("users", uid, {"status": "banned"})
        assert (await register(reconciler)).outcome == S.DENIED

        await store.merge_write("users", uid, {"status": "active"})
        assert (await register(reconciler)).outcome == S.RESTORED

    async def test_other_create_failure_is_terminal(self, reconciler, provider, store):
        provider.create_error = ProviderFailureError("quota exceeded")

        result = await register(reconciler)

        assert result.outcome == S.FAILED
        assert "quota exceeded" in result.reason
        assert "login" not in provider.calls
        assert store.writes == 0
        with pytest.raises(ProviderFailureError):
            result.raise_for_outcome()

    async def test_recovery_login_provider_failure(self, reconciler, provider):
        provider.seed("a@example.com", "secret1")
        provider.login_error = ProviderFailureError("network down")

        result = await register(reconciler)

        assert result.outcome == S.FAILED
        assert result.trace[-2] == S.RECOVERING_LOGIN

    async def test_unreadable_profile_fails_closed(self, provider):
        provider.seed("a@example.com", "secret1")
        reconciler = IdentityReconciler(provider, ProfileUpsert(UnreadableStore(), timeout=1.0))

        result = await register(reconciler)

        assert result.outcome == S.FAILED
        assert provider.signed_out


# ---------------------------------------------------------------------------
# Best-effort profile write
# ---------------------------------------------------------------------------

class TestProfileTimeout:
    async def test_hanging_store_does_not_block_creation(self, provider):
        reconciler = IdentityReconciler(provider, ProfileUpsert(HangingStore(), timeout=0.05))

        result = await asyncio.wait_for(register(reconciler), timeout=2)

        assert result.outcome == S.CREATED
        assert result.profile_synced is False
        result.raise_for_outcome()

    async def test_frozen_store_does_not_block_recovery(self, provider):
        provider.seed("a@example.com", "secret1")
        reconciler = IdentityReconciler(provider, ProfileUpsert(FrozenStore(), timeout=0.05))

        result = await asyncio.wait_for(register(reconciler), timeout=2)

        assert result.outcome == S.FAILED
        assert result.trace[-2] == S.BAN_CHECK
        assert result.profile_synced is False
        assert provider.signed_out

    async def test_frozen_store_profile_read_times_out(self):
        profiles = ProfileUpsert(FrozenStore(), timeout=0.05)

        with pytest.raises(StoreTimeoutError):
            await asyncio.wait_for(profiles.get("uid-1"), timeout=2)


# ---------------------------------------------------------------------------
# Federated sign-in
# ---------------------------------------------------------------------------

class TestFederatedSignIn:
    async def test_wrong_code_never_starts_federated_flow(self, reconciler, provider):
        provider.federated["cred"] = "fed@example.com"
        with pytest.raises(AccessCodeMismatchError):
            await reconciler.federated_sign_in("cred", "WRONG", CODE)
        assert provider.calls == []

    async def test_first_federated_sign_in_restores_admin_profile(self, reconciler, provider, store):
        provider.federated["cred"] = "fed@example.com"

        result = await reconciler.federated_sign_in("cred", CODE, CODE)

        assert result.outcome == S.RESTORED
        assert result.trace == [S.IDLE, S.VALIDATING, S.AUTHENTICATING, S.BAN_CHECK, S.RESTORED]
        profile = store.collections["users"][result.identity.uid]
        assert profile["authProvider"] == "federated"
        assert profile["role"] == "admin"
        assert profile["name"] == "Fed User"
        assert "createdAt" in profile
        assert "restoredAt" in profile

    async def test_banned_federated_identity_is_denied(self, reconciler, provider, store):
        provider.federated["cred"] = "fed@example.com"
        first = await reconciler.federated_sign_in("cred", CODE, CODE)
        await store.merge_write("users", first.identity.uid, {"status": "banned"})

        result = await reconciler.federated_sign_in("cred", CODE, CODE)

        assert result.outcome == S.DENIED
        assert provider.signed_out
        assert store.collections["users"][first.identity.uid]["status"] == "banned"

    async def test_rejected_credential_fails(self, reconciler):
        result = await reconciler.federated_sign_in("unknown", CODE, CODE)
        assert result.outcome == S.FAILED
        assert "bad credential" in result.reason
