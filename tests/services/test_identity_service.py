"""IdentityService: claims are hints, the store is the truth."""

from dataclasses import replace
from uuid import uuid4

import pytest
from sqlalchemy import update

from voucher_kernel.domain.identity import Identity, Role
from voucher_kernel.exceptions import (
    AuthorizationError,
    OrganizationNotFoundError,
    UserNotFoundError,
)
from voucher_kernel.models.user import User
from voucher_kernel.services.identity_service import IdentityService


@pytest.fixture
def service(session, deterministic_clock):
    return IdentityService(session, deterministic_clock)


class TestVerify:

    def test_uses_stored_name(self, service, acme, identity_of):
        claim = replace(identity_of(acme["admin"]), name="Token Name")
        actor = service.verify(claim)
        assert actor.name == "Grace Admin"
        assert actor.role == Role.ADMIN

    def test_stale_role_is_refused(self, service, session, acme, identity_of, captured_logs):
        session.execute(
            update(User).where(User.id == acme["admin2"].id).values(role=Role.STAFF.value)
        )
        with pytest.raises(AuthorizationError) as exc_info:
            service.verify(identity_of(acme["admin2"]))
        assert "stale" in exc_info.value.reason
        record = next(r for r in captured_logs() if r["message"] == "identity_rejected")
        assert record["reason"] == "stale_role"

    def test_unknown_user_is_refused(self, service, acme):
        claim = Identity(uuid4(), Role.ADMIN, acme["org"].id, "Ghost")
        with pytest.raises(AuthorizationError):
            service.verify(claim)

    def test_organization_mismatch_is_refused(self, service, acme, beta, identity_of):
        claim = replace(identity_of(acme["admin"]), organization_id=beta["org"].id)
        with pytest.raises(AuthorizationError):
            service.verify(claim)

    def test_trusting_the_claim(self, service, acme, identity_of):
        claim = replace(identity_of(acme["admin2"]), name="Token Name")
        actor = service.verify(claim, against_store=False)
        assert actor.name == "Token Name"
        assert actor.role == Role.ADMIN


class TestFromClaims:

    def test_decoded_token_payload(self):
        user_id, org_id = uuid4(), uuid4()
        identity = Identity.from_claims({
            "userId": str(user_id),
            "role": "accountant",
            "organizationId": str(org_id),
            "name": "Cora",
        })
        assert identity == Identity(user_id, Role.ACCOUNTANT, org_id, "Cora")


class TestResolve:

    def test_resolve_user(self, service, acme):
        info = service.resolve_user(acme["bob"].id)
        assert info.name == "Bob"
        assert info.role == Role.STAFF

    def test_resolve_user_in_other_organization(self, service, acme, beta):
        with pytest.raises(UserNotFoundError):
            service.resolve_user(acme["bob"].id, beta["org"].id)

    def test_resolve_organization(self, service, acme):
        assert service.resolve_organization(acme["org"].id).name == "Acme"

    def test_resolve_missing_organization(self, service):
        with pytest.raises(OrganizationNotFoundError):
            service.resolve_organization(uuid4())

    def test_members_oldest_first(self, service, acme):
        members = service.members(acme["org"].id)
        assert members[0] == (acme["admin"].id, Role.ADMIN)
        assert len(members) == 6
