"""
Identity reconciliation — create-or-recover provisioning of admin identities.

Creating an identity at the provider and writing its profile document are
two separate remote operations. A crash (or a closed browser tab) between
them leaves an identity without a profile, and a profile can also be
changed out of band after the identity exists. Registration is made
idempotent by treating "identity already exists" as a recoverable conflict:
the supplied password is tried against the existing identity, and a
successful login repairs the profile instead of failing the request.

The flow is an explicit state machine. `transition()` is a pure function
over (state, event) so every branch can be unit tested without I/O; the
async runners below only perform the remote calls and feed the resulting
events back in.

Email registration:

    IDLE -> VALIDATING -> CREATING -+-> CREATED
                                    +-> FAILED
                                    +-> CONFLICT_DETECTED -> RECOVERING_LOGIN -+-> INCORRECT_CREDENTIAL
                                                                               +-> FAILED
                                                                               +-> BAN_CHECK -+-> RESTORED
                                                                                              +-> DENIED
                                                                                              +-> FAILED

Federated sign-in (no password, so no INCORRECT_CREDENTIAL):

    IDLE -> VALIDATING -> AUTHENTICATING -+-> BAN_CHECK -> {RESTORED | DENIED | FAILED}
                                          +-> FAILED

Ban status is re-read on every pass through BAN_CHECK. When the profile
cannot be read the session is signed out and the flow fails closed.
"""

import enum
import logging
from dataclasses import dataclass, field

from app.exceptions import (
    AccessCodeMismatchError,
    AccountBannedError,
    BadCredentialError,
    IdentityExistsError,
    IncorrectCredentialError,
    PasswordMismatchError,
    ProviderError,
    ProviderFailureError,
    StoreError,
    WeakPasswordError,
)
from app.identity.provider import Identity, IdentityProvider
from app.models.identity import AuthProvider
from app.models.profile import ProfileRole, ProfileStatus, is_banned
from app.security import secrets_match
from app.services.profiles import ProfileUpsert

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class ReconcileState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CREATING = "creating"
    AUTHENTICATING = "authenticating"
    CONFLICT_DETECTED = "conflict_detected"
    RECOVERING_LOGIN = "recovering_login"
    BAN_CHECK = "ban_check"
    # Terminal states
    CREATED = "created"
    RESTORED = "restored"
    DENIED = "denied"
    INCORRECT_CREDENTIAL = "incorrect_credential"
    FAILED = "failed"


class ReconcileEvent(str, enum.Enum):
    SUBMITTED = "submitted"
    VALIDATED = "validated"
    FEDERATED_VALIDATED = "federated_validated"
    IDENTITY_CREATED = "identity_created"
    IDENTITY_EXISTS = "identity_exists"
    PROVIDER_FAILED = "provider_failed"
    RECOVERY_STARTED = "recovery_started"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_REJECTED = "login_rejected"
    AUTHENTICATED = "authenticated"
    PROFILE_ACTIVE = "profile_active"
    PROFILE_BANNED = "profile_banned"
    PROFILE_UNREADABLE = "profile_unreadable"


TERMINAL_STATES = frozenset({
    ReconcileState.CREATED,
    ReconcileState.RESTORED,
    ReconcileState.DENIED,
    ReconcileState.INCORRECT_CREDENTIAL,
    ReconcileState.FAILED,
})

S = ReconcileState
E = ReconcileEvent

TRANSITIONS: dict[tuple[ReconcileState, ReconcileEvent], ReconcileState] = {
    (S.IDLE, E.SUBMITTED): S.VALIDATING,
    (S.VALIDATING, E.VALIDATED): S.CREATING,
    (S.VALIDATING, E.FEDERATED_VALIDATED): S.AUTHENTICATING,
    (S.CREATING, E.IDENTITY_CREATED): S.CREATED,
    (S.CREATING, E.IDENTITY_EXISTS): S.CONFLICT_DETECTED,
    (S.CREATING, E.PROVIDER_FAILED): S.FAILED,
    (S.CONFLICT_DETECTED, E.RECOVERY_STARTED): S.RECOVERING_LOGIN,
    (S.RECOVERING_LOGIN, E.LOGIN_SUCCEEDED): S.BAN_CHECK,
    (S.RECOVERING_LOGIN, E.LOGIN_REJECTED): S.INCORRECT_CREDENTIAL,
    (S.RECOVERING_LOGIN, E.PROVIDER_FAILED): S.FAILED,
    (S.AUTHENTICATING, E.AUTHENTICATED): S.BAN_CHECK,
    (S.AUTHENTICATING, E.PROVIDER_FAILED): S.FAILED,
    (S.BAN_CHECK, E.PROFILE_ACTIVE): S.RESTORED,
    (S.BAN_CHECK, E.PROFILE_BANNED): S.DENIED,
    (S.BAN_CHECK, E.PROFILE_UNREADABLE): S.FAILED,
}


class InvalidTransitionError(Exception):
    def __init__(self, state: ReconcileState, event: ReconcileEvent):
        self.state = state
        self.event = event
        super().__init__(f"No transition from {state.value} on {event.value}")


def transition(state: ReconcileState, event: ReconcileEvent) -> ReconcileState:
    """Pure transition function of the reconciliation machine."""
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state, event)


@dataclass
class ReconcileResult:
    """
    Structured outcome of a reconciliation run.

    `outcome` is the terminal state. `profile_synced` is only meaningful for
    CREATED/RESTORED: True when the profile write landed, False when the
    identity is provisioned but its profile still needs reconciling.
    """

    outcome: ReconcileState
    identity: Identity | None = None
    profile_synced: bool = False
    reason: str | None = None
    trace: list[ReconcileState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome in (ReconcileState.CREATED, ReconcileState.RESTORED)

    def raise_for_outcome(self) -> None:
        """Translate a failed outcome into the matching domain exception."""
        if self.outcome == ReconcileState.DENIED:
            raise AccountBannedError()
        if self.outcome == ReconcileState.INCORRECT_CREDENTIAL:
            raise IncorrectCredentialError()
        if self.outcome == ReconcileState.FAILED:
            raise ProviderFailureError(self.reason or "Failed to register.")


class _Run:
    """Bookkeeping for one pass through the machine."""

    def __init__(self) -> None:
        self.state = ReconcileState.IDLE
        self.trace = [self.state]

    def fire(self, event: ReconcileEvent) -> ReconcileState:
        self.state = transition(self.state, event)
        self.trace.append(self.state)
        return self.state

    def finish(self, identity: Identity | None = None, profile_synced: bool = False,
               reason: str | None = None) -> ReconcileResult:
        return ReconcileResult(
            outcome=self.state,
            identity=identity,
            profile_synced=profile_synced,
            reason=reason,
            trace=list(self.trace),
        )


def validate_admin_registration(
    password: str,
    confirm_password: str,
    supplied_code: str,
    expected_code: str,
) -> None:
    """
    Reject invalid input before any remote call.

    Raises:
        AccessCodeMismatchError, PasswordMismatchError, WeakPasswordError
    """
    if not secrets_match(supplied_code, expected_code):
        raise AccessCodeMismatchError()
    validate_passwords(password, confirm_password)


def validate_passwords(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise PasswordMismatchError()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPasswordError(MIN_PASSWORD_LENGTH)


class IdentityReconciler:
    def __init__(self, provider: IdentityProvider, profiles: ProfileUpsert):
        self._provider = provider
        self._profiles = profiles

    async def register_or_recover(
        self,
        email: str,
        password: str,
        confirm_password: str,
        supplied_code: str,
        expected_code: str,
    ) -> ReconcileResult:
        """
        Register an admin identity, or repair the profile of an existing one.

        Validation errors are raised; every other outcome is returned as a
        ReconcileResult (call raise_for_outcome() to surface failures).
        """
        run = _Run()
        run.fire(E.SUBMITTED)
        validate_admin_registration(password, confirm_password, supplied_code, expected_code)
        run.fire(E.VALIDATED)

        try:
            identity = await self._provider.create_identity(email, password)
        except IdentityExistsError:
            run.fire(E.IDENTITY_EXISTS)
        except ProviderError as exc:
            run.fire(E.PROVIDER_FAILED)
            logger.warning("Admin registration failed at the provider: %s", exc.detail)
            return run.finish(reason=f"Failed to register. {exc.detail}")
        else:
            run.fire(E.IDENTITY_CREATED)
            sync = await self._profiles.upsert(
                identity,
                {
                    "role": ProfileRole.ADMIN.value,
                    "status": ProfileStatus.ACTIVE.value,
                    "authProvider": AuthProvider.EMAIL.value,
                },
            )
            logger.info("Admin identity %s created", identity.uid)
            return run.finish(identity=identity, profile_synced=sync.synced)

        logger.info("Email already registered; attempting recovery login")
        run.fire(E.RECOVERY_STARTED)
        try:
            identity = await self._provider.login(email, password)
        except BadCredentialError:
            run.fire(E.LOGIN_REJECTED)
            return run.finish()
        except ProviderError as exc:
            run.fire(E.PROVIDER_FAILED)
            return run.finish(reason=f"Failed to register. {exc.detail}")
        run.fire(E.LOGIN_SUCCEEDED)

        return await self._ban_check_and_restore(
            run,
            identity,
            {
                "role": ProfileRole.ADMIN.value,
                "status": ProfileStatus.ACTIVE.value,
            },
        )

    async def federated_sign_in(
        self,
        credential: str,
        supplied_code: str,
        expected_code: str,
    ) -> ReconcileResult:
        """
        Register or restore an admin through the federated issuer.

        The access code is checked before the federated flow starts.
        """
        run = _Run()
        run.fire(E.SUBMITTED)
        if not secrets_match(supplied_code, expected_code):
            raise AccessCodeMismatchError()
        run.fire(E.FEDERATED_VALIDATED)

        try:
            identity = await self._provider.sign_in_federated(credential)
        except ProviderError as exc:
            run.fire(E.PROVIDER_FAILED)
            return run.finish(reason=f"Federated registration failed. {exc.detail}")
        run.fire(E.AUTHENTICATED)

        return await self._ban_check_and_restore(
            run,
            identity,
            {
                "role": ProfileRole.ADMIN.value,
                "status": ProfileStatus.ACTIVE.value,
                "authProvider": AuthProvider.FEDERATED.value,
            },
        )

    async def _ban_check_and_restore(
        self,
        run: _Run,
        identity: Identity,
        fields: dict,
    ) -> ReconcileResult:
        try:
            profile = await self._profiles.get(identity.uid)
        except StoreError as exc:
            await self._provider.sign_out(identity)
            run.fire(E.PROFILE_UNREADABLE)
            logger.warning("Ban check for %s could not read the profile: %s", identity.uid, exc.detail)
            return run.finish(reason=exc.detail)

        if is_banned(profile):
            await self._provider.sign_out(identity)
            run.fire(E.PROFILE_BANNED)
            logger.warning("Banned identity %s denied access", identity.uid)
            return run.finish()

        run.fire(E.PROFILE_ACTIVE)
        if identity.display_name:
            fields = {"name": identity.display_name, **fields}
        sync = await self._profiles.upsert(identity, fields, is_recovery=True)
        logger.info("Admin profile %s restored", identity.uid)
        return run.finish(identity=identity, profile_synced=sync.synced)
