"""Tests for the database-backed identity provider."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from zusplus.core.errors import IdentityProviderError, InvalidCodeError, InvalidCredentialsError, NotAuthenticatedError
from zusplus.identity.base import AssuranceLevel, FactorStatus
from zusplus.models.mfa_challenge import MFAChallenge
from zusplus.models.mfa_factor import MFAFactor
from zusplus.repositories import mfa_repo
from zusplus.utils.crypto_utils import SecretCipher
from tests.helpers import ADMIN_EMAIL, ADMIN_PASSWORD, totp_now, wrong_code


def test_sign_in_creates_aal1_session(admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    assert session.aal is AssuranceLevel.AAL1
    assert session.user.email == ADMIN_EMAIL
    assert provider.get_session(session.access_token).aal is AssuranceLevel.AAL1


def test_sign_in_normalizes_email(admin, provider):
    session = provider.sign_in_with_password("  Admin@ZUSPlus.pl ", ADMIN_PASSWORD)

    assert session.user.email == ADMIN_EMAIL


@pytest.mark.parametrize(
    "email,password",
    [(ADMIN_EMAIL, "wrong-password"), ("nobody@zusplus.pl", ADMIN_PASSWORD)],
)
def test_invalid_credentials(admin, provider, email, password):
    with pytest.raises(InvalidCredentialsError) as exc:
        provider.sign_in_with_password(email, password)

    assert exc.value.message == "Nieprawidłowy email lub hasło"


def test_garbage_token_has_no_session(provider):
    assert provider.get_session("not-a-jwt") is None
    assert provider.get_session("") is None


def test_list_factors_requires_session(provider):
    with pytest.raises(NotAuthenticatedError):
        provider.list_factors("not-a-jwt")


def test_enrollment_returns_qr_and_secret(admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    enrollment = provider.enroll_factor(session.access_token, "Admin Authenticator")

    assert enrollment.uri.startswith("otpauth://totp/")
    assert "issuer=ZUSPlus" in enrollment.uri
    assert enrollment.qr_code.startswith("data:image/svg+xml")
    assert len(enrollment.secret) >= 16

    factors = provider.list_factors(session.access_token)
    assert [f.status for f in factors] == [FactorStatus.UNVERIFIED]


def test_new_enrollment_replaces_abandoned_one(admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    first = provider.enroll_factor(session.access_token, "Admin Authenticator")
    second = provider.enroll_factor(session.access_token, "Admin Authenticator")

    ids = [f.id for f in provider.list_factors(session.access_token)]
    assert ids == [second.factor_id]
    assert first.factor_id not in ids


def test_verify_promotes_session_and_factor(admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    enrollment = provider.enroll_factor(session.access_token, "Admin Authenticator")
    challenge = provider.create_challenge(session.access_token, enrollment.factor_id)

    promoted = provider.verify_challenge(
        session.access_token, enrollment.factor_id, challenge.id, totp_now(enrollment.secret)
    )

    assert promoted.is_aal2
    # altes Token zeigt auf dieselbe Session und ist jetzt ebenfalls AAL2
    assert provider.get_session(session.access_token).is_aal2
    assert provider.list_factors(promoted.access_token)[0].is_verified


def test_enroll_refused_when_verified_factor_exists(enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    with pytest.raises(IdentityProviderError):
        provider.enroll_factor(session.access_token, "Zweiter")


def test_wrong_code_does_not_promote(enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    factor_id = provider.list_factors(session.access_token)[0].id
    challenge = provider.create_challenge(session.access_token, factor_id)

    with pytest.raises(InvalidCodeError):
        provider.verify_challenge(session.access_token, factor_id, challenge.id, wrong_code(totp_now(enrolled_admin)))

    assert provider.get_session(session.access_token).aal is AssuranceLevel.AAL1


def test_challenge_is_single_use(enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    factor_id = provider.list_factors(session.access_token)[0].id
    challenge = provider.create_challenge(session.access_token, factor_id)
    code = totp_now(enrolled_admin)

    provider.verify_challenge(session.access_token, factor_id, challenge.id, code)

    with pytest.raises(InvalidCodeError):
        provider.verify_challenge(session.access_token, factor_id, challenge.id, code)


def test_wrong_code_also_consumes_challenge(enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    factor_id = provider.list_factors(session.access_token)[0].id
    challenge = provider.create_challenge(session.access_token, factor_id)
    code = totp_now(enrolled_admin)

    with pytest.raises(InvalidCodeError):
        provider.verify_challenge(session.access_token, factor_id, challenge.id, wrong_code(code))
    with pytest.raises(InvalidCodeError):
        provider.verify_challenge(session.access_token, factor_id, challenge.id, code)


def test_expired_challenge_is_rejected(app, enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    factor_id = provider.list_factors(session.access_token)[0].id
    challenge = provider.create_challenge(session.access_token, factor_id)

    with app.state.session_factory() as db:
        db.execute(
            update(MFAChallenge)
            .where(MFAChallenge.id == challenge.id)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        )
        db.commit()

    with pytest.raises(InvalidCodeError):
        provider.verify_challenge(session.access_token, factor_id, challenge.id, totp_now(enrolled_admin))


def test_challenge_for_foreign_factor_is_rejected(enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    with pytest.raises(IdentityProviderError):
        provider.create_challenge(session.access_token, "00000000-0000-0000-0000-000000000000")


def test_sign_out_revokes_session(enrolled_admin, provider):
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    provider.sign_out(session.access_token)

    assert provider.get_session(session.access_token) is None


def test_secret_is_encrypted_at_rest(app, admin, provider):
    key = "ZmFrZS1rZXktZm9yLXRlc3RzLW9ubHktMzJieXRlcyE="
    provider._cipher = SecretCipher(key)
    session = provider.sign_in_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)

    enrollment = provider.enroll_factor(session.access_token, "Admin Authenticator")

    with app.state.session_factory() as db:
        row = db.get(MFAFactor, enrollment.factor_id)
        assert row.secret_encrypted != enrollment.secret
        assert SecretCipher(key).decrypt_text(row.secret_encrypted) == enrollment.secret


def test_as_utc_handles_naive_datetimes():
    naive = datetime(2030, 1, 1, 12, 0)

    assert mfa_repo.as_utc(naive).tzinfo is timezone.utc
    assert mfa_repo.as_utc(None) is None
