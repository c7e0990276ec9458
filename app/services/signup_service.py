"""
Signup state machine.

    form_entry -> product_validating -> staged -> otp_pending -> verifying
        -> reconciling -> complete

- change method: otp_pending -> staged (staged data kept)
- abandon: any non-terminal state -> staged data cleared, back to form_entry

The SignupSession record is passed explicitly through every transition and
persisted in the staging store between requests. Provider calls are awaited
without holding anything; the write that follows is a compare-and-set on the
session generation, so a response that lands after the user abandoned or moved
on is dropped.
"""
import logging
from datetime import timedelta
from typing import Dict, Set, Tuple

from app.domain.enums import OTPChannel, OTPIntent, SignupState
from app.domain.exceptions import (
    AuthFlowError,
    InvalidSignupTransition,
    SignupSessionNotFound,
    ValidationError,
)
from app.domain.models import (
    ReconciliationResult,
    SendReceipt,
    SignupForm,
    SignupSession,
    TempUserData,
    VerifiedUser,
    utc_now,
)
from app.services.otp_service import OTPService
from app.services.product_service import ProductService
from app.services.profile_service import ProfileReconciliationService, build_user_metadata
from app.services.staging_store import SignupStagingStore
from app.utils.validators import (
    DEFAULT_COUNTRY_CODE,
    normalize_phone,
    signup_form_violations,
    validate_otp_code,
)

logger = logging.getLogger(__name__)

RESEND_COOLDOWN_SECONDS = 60

# Abandoning is allowed from every state except complete, see SignupService.abandon
ALLOWED_TRANSITIONS: Dict[SignupState, Set[SignupState]] = {
    SignupState.FORM_ENTRY: {SignupState.PRODUCT_VALIDATING},
    SignupState.PRODUCT_VALIDATING: {SignupState.STAGED, SignupState.FORM_ENTRY},
    SignupState.STAGED: {SignupState.OTP_PENDING},
    SignupState.OTP_PENDING: {
        SignupState.OTP_PENDING,  # resend
        SignupState.STAGED,  # change method
        SignupState.VERIFYING,
    },
    SignupState.VERIFYING: {SignupState.RECONCILING, SignupState.OTP_PENDING},
    SignupState.RECONCILING: {SignupState.COMPLETE},
    SignupState.COMPLETE: set(),
    SignupState.ABANDONED: {SignupState.FORM_ENTRY},
}


def can_transition(current: SignupState, target: SignupState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def transition(session: SignupSession, target: SignupState, action: str, **updates) -> SignupSession:
    """Pure transition function: a new session in `target`, or InvalidSignupTransition"""
    if not can_transition(session.state, target):
        raise InvalidSignupTransition(session.state.value, action)
    moved = session.advance(target)
    return moved.model_copy(update=updates) if updates else moved


class SignupService:
    """Drives a signup from form submit to a verified, reconciled account"""

    def __init__(
        self,
        store: SignupStagingStore,
        product_service: ProductService,
        otp_service: OTPService,
        reconciler: ProfileReconciliationService,
        resend_cooldown_seconds: int = RESEND_COOLDOWN_SECONDS,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.store = store
        self.product_service = product_service
        self.otp_service = otp_service
        self.reconciler = reconciler
        self.resend_cooldown = timedelta(seconds=resend_cooldown_seconds)
        self.country_code = country_code

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def get(self, signup_id: str) -> SignupSession:
        session = await self.store.load(signup_id)
        if session is None:
            raise SignupSessionNotFound()
        return session

    async def _commit(self, session: SignupSession, expected_generation: int) -> bool:
        """Persist `session` unless the stored record moved past `expected_generation`"""
        if await self.store.save_if_current(session, expected_generation):
            return True
        logger.info(f"Ignoring stale update for signup {session.signup_id}")
        return False

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit_form(self, form: SignupForm) -> SignupSession:
        """
        form_entry -> product_validating -> staged.

        Local validation runs first and never touches the network; the first
        violated rule is raised. The product lookup follows; any negative
        result raises InvalidProductId.
        """
        violations = signup_form_violations(
            product_id=form.product_id,
            full_name=form.full_name,
            email=form.email,
            mobile_number=form.mobile_number,
            password=form.password,
            confirm_password=form.confirm_password,
        )
        if violations:
            raise ValidationError(violations[0], violations)

        mobile_number = normalize_phone(form.mobile_number, self.country_code)

        session = transition(SignupSession(), SignupState.PRODUCT_VALIDATING, "validate the product ID")
        product = await self.product_service.validate_product_id(form.product_id)

        staged = TempUserData(
            product_id=product.id,
            full_name=form.full_name.strip(),
            mobile_number=mobile_number,
            email=form.email.strip(),
            password=form.password,
        )
        session = transition(session, SignupState.STAGED, "stage signup data", staged=staged)
        await self.store.save(session)

        logger.info(f"Signup {session.signup_id} staged for product {product.id}")
        return session

    async def select_channel(self, signup_id: str, channel: OTPChannel) -> Tuple[SignupSession, SendReceipt]:
        """
        staged -> otp_pending: send a signup OTP over the chosen channel.
        On failure the session stays staged and the error propagates.
        """
        session = await self.get(signup_id)
        if session.state != SignupState.STAGED:
            raise InvalidSignupTransition(session.state.value, "send a verification code")

        staged = session.staged
        receipt = await self.otp_service.send_otp(
            channel,
            staged.identifier_for(channel),
            OTPIntent.SIGNUP,
            metadata=build_user_metadata(staged, self.country_code),
        )

        now = utc_now()
        pending = transition(
            session,
            SignupState.OTP_PENDING,
            "send a verification code",
            channel=channel,
            otp_sent_at=now,
            resend_available_at=now + self.resend_cooldown,
        )
        if not await self._commit(pending, session.generation):
            return await self.get(signup_id), receipt
        return pending, receipt

    async def resend(self, signup_id: str) -> Tuple[SignupSession, SendReceipt]:
        """
        otp_pending -> otp_pending with a fresh code and a restarted cooldown.
        The cooldown itself is enforced by the caller.
        """
        session = await self.get(signup_id)
        if session.state != SignupState.OTP_PENDING:
            raise InvalidSignupTransition(session.state.value, "resend the verification code")

        staged = session.staged
        receipt = await self.otp_service.resend_otp(
            session.channel,
            staged.identifier_for(session.channel),
            OTPIntent.SIGNUP,
            metadata=build_user_metadata(staged, self.country_code),
        )

        now = utc_now()
        resent = transition(
            session,
            SignupState.OTP_PENDING,
            "resend the verification code",
            otp_sent_at=now,
            resend_available_at=now + self.resend_cooldown,
        )
        if not await self._commit(resent, session.generation):
            return await self.get(signup_id), receipt
        return resent, receipt

    async def change_method(self, signup_id: str) -> SignupSession:
        """otp_pending -> staged, keeping the staged data"""
        session = await self.get(signup_id)
        if session.state != SignupState.OTP_PENDING:
            raise InvalidSignupTransition(session.state.value, "change the verification method")

        staged = transition(
            session,
            SignupState.STAGED,
            "change the verification method",
            channel=None,
            otp_sent_at=None,
            resend_available_at=None,
        )
        if not await self._commit(staged, session.generation):
            return await self.get(signup_id)
        return staged

    async def verify(
        self,
        signup_id: str,
        code: str,
    ) -> Tuple[SignupSession, VerifiedUser, ReconciliationResult]:
        """
        otp_pending -> verifying -> reconciling -> complete.

        The 6-digit precheck happens before any state change. Whatever goes
        wrong during the provider call, the session returns to otp_pending so
        the user can try again. After the provider accepts the code,
        reconciliation always runs with the full staged payload; its outcome
        never fails the signup. The staged record is deleted on completion.
        """
        session = await self.get(signup_id)
        if session.state != SignupState.OTP_PENDING:
            raise InvalidSignupTransition(session.state.value, "verify the code")

        code = validate_otp_code(code)
        staged = session.staged
        channel = session.channel

        verifying = transition(session, SignupState.VERIFYING, "verify the code")
        if not await self._commit(verifying, session.generation):
            current = await self.get(signup_id)
            raise InvalidSignupTransition(current.state.value, "verify the code")

        try:
            verified = await self.otp_service.verify_otp(
                channel,
                staged.identifier_for(channel),
                code,
                OTPIntent.SIGNUP,
            )
        except Exception as e:
            if not isinstance(e, AuthFlowError):
                logger.error(f"Unexpected error verifying signup {signup_id}: {e}")
            retry = transition(verifying, SignupState.OTP_PENDING, "retry verification")
            await self._commit(retry, verifying.generation)
            raise

        reconciling = transition(verifying, SignupState.RECONCILING, "save the profile", user_id=verified.user_id)
        if not await self._commit(reconciling, verifying.generation):
            # Abandoned while verifying: the identity exists server-side, but
            # the discarded signup must not be resurrected here.
            raise SignupSessionNotFound()

        try:
            result = await self.reconciler.reconcile(verified.user_id, staged)
        except Exception as e:
            logger.error(f"Unexpected reconciliation error for user {verified.user_id}: {e}")
            result = ReconciliationResult(user_id=verified.user_id, attempts=0, degraded=True, error=str(e))

        complete = transition(
            reconciling,
            SignupState.COMPLETE,
            "complete signup",
            staged=None,
            profile_degraded=result.degraded,
        )
        await self.store.delete(signup_id)

        logger.info(
            f"Signup {signup_id} complete for user {verified.user_id} via {channel.value}"
            + (" (profile incomplete)" if result.degraded else "")
        )
        return complete, verified, result

    async def abandon(self, signup_id: str) -> SignupSession:
        """
        Explicit back: clear every trace of the staged signup.
        In-flight provider calls are not cancelled; their responses are ignored.
        """
        session = await self.store.load(signup_id)
        await self.store.delete(signup_id)

        if session is None:
            return SignupSession(signup_id=signup_id)

        logger.info(f"Signup {signup_id} abandoned from {session.state.value}")
        if session.state == SignupState.COMPLETE:
            return session
        abandoned = session.advance(SignupState.ABANDONED).model_copy(update={"staged": None})
        return transition(abandoned, SignupState.FORM_ENTRY, "start over")
