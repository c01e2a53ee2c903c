"""OrganizationService: registration, user management, cascade delete."""

import pytest

from voucher_kernel.domain.identity import (
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    PASSWORD_HASH_MAX_LENGTH,
    Role,
)
from voucher_kernel.domain.voucher import PURPOSE_MAX_LENGTH, STAFF_NAME_MAX_LENGTH
from voucher_kernel.exceptions import (
    AuthorizationError,
    DuplicateEmailError,
    DuplicateOrganizationError,
    UserNotFoundError,
    ValidationError,
)
from voucher_kernel.models.notification import Notification
from voucher_kernel.models.organization import Organization
from voucher_kernel.models.user import User
from voucher_kernel.models.voucher import Voucher
from voucher_kernel.services.identity_service import IdentityService
from voucher_kernel.services.notification_service import NotificationService
from voucher_kernel.services.organization_service import OrganizationService
from voucher_kernel.services.voucher_service import VoucherService


@pytest.fixture
def service(session, deterministic_clock):
    return OrganizationService(session, deterministic_clock)


class TestRegister:

    def test_creates_org_and_main_admin(self, service, session, deterministic_clock):
        org, admin = service.register_organization("Acme", "Grace", "Grace@Acme.test", "hash")
        assert org.name == "Acme"
        assert admin.role == Role.ADMIN
        assert admin.email == "grace@acme.test"
        assert admin.organization_id == org.id
        assert IdentityService(session, deterministic_clock).main_admin_id(org.id) == admin.id

    def test_missing_fields_all_reported(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.register_organization(" ", None, "not-an-email", "")
        assert exc_info.value.errors == {
            "name": "required",
            "admin_name": "required",
            "email": "must be an email address",
            "password_hash": "required",
        }

    def test_duplicate_name_case_insensitive(self, service):
        service.register_organization("Acme", "Grace", "grace@acme.test", "hash")
        with pytest.raises(DuplicateOrganizationError) as exc_info:
            service.register_organization("ACME", "Other", "other@acme.test", "hash")
        assert exc_info.value.code == "DUPLICATE_ORGANIZATION"
        assert isinstance(exc_info.value, ValidationError)

    def test_duplicate_email(self, service):
        service.register_organization("Acme", "Grace", "grace@acme.test", "hash")
        with pytest.raises(DuplicateEmailError):
            service.register_organization("Beta", "Grace", "GRACE@acme.test", "hash")

    def test_both_duplicate_lists_both_fields(self, service):
        service.register_organization("Acme", "Grace", "grace@acme.test", "hash")
        with pytest.raises(ValidationError) as exc_info:
            service.register_organization("Acme", "Grace", "grace@acme.test", "hash")
        assert exc_info.value.fields == ("email", "name")

    def test_oversized_fields_all_reported(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.register_organization(
                "O" * 201, "A" * 201, "a" * 320 + "@x.test", "h" * 256,
            )
        assert exc_info.value.errors == {
            "name": "must be at most 200 characters",
            "admin_name": "must be at most 200 characters",
            "email": "must be at most 320 characters",
            "password_hash": "must be at most 255 characters",
        }

    def test_limits_match_columns(self):
        assert Organization.__table__.c.name.type.length == NAME_MAX_LENGTH
        assert User.__table__.c.name.type.length == NAME_MAX_LENGTH
        assert User.__table__.c.email.type.length == EMAIL_MAX_LENGTH
        assert User.__table__.c.password_hash.type.length == PASSWORD_HASH_MAX_LENGTH
        assert Voucher.__table__.c.purpose.type.length == PURPOSE_MAX_LENGTH
        assert Voucher.__table__.c.staff_name.type.length == STAFF_NAME_MAX_LENGTH


class TestUsers:

    def test_create_user_in_actor_org(self, service, acme, actor_for):
        user = service.create_user(
            actor_for(acme["admin"]), "Dan", "dan@acme.test", "hash", "accountant",
        )
        assert user.role == Role.ACCOUNTANT
        assert user.organization_id == acme["org"].id

    def test_created_users_sort_after_main_admin(self, service, acme, actor_for):
        # every user is created at the same clock instant; order still holds
        users = service.list_users(actor_for(acme["admin"]))
        created = [u.created_at for u in users]
        assert created == sorted(created)
        assert len(set(created)) == len(created)
        assert users[0].id == acme["admin"].id

    def test_second_admin_is_not_main_admin(self, session, deterministic_clock, acme):
        main_admin_id = IdentityService(session, deterministic_clock).main_admin_id(acme["org"].id)
        assert main_admin_id == acme["admin"].id
        assert main_admin_id != acme["admin2"].id

    def test_invalid_role(self, service, acme, actor_for):
        with pytest.raises(ValidationError) as exc_info:
            service.create_user(actor_for(acme["admin"]), "Dan", "dan@acme.test", "hash", "owner")
        assert set(exc_info.value.errors) == {"role"}

    def test_duplicate_email_across_organizations(self, service, acme, beta, actor_for):
        with pytest.raises(DuplicateEmailError):
            service.create_user(actor_for(beta["admin"]), "Ada", acme["ada"].email, "hash", "staff")

    def test_rename(self, service, acme, actor_for):
        renamed = service.rename_user(actor_for(acme["admin"]), acme["bob"].id, " Robert ")
        assert renamed.name == "Robert"

    def test_rename_too_long(self, service, acme, actor_for):
        with pytest.raises(ValidationError) as exc_info:
            service.rename_user(actor_for(acme["admin"]), acme["bob"].id, "R" * 201)
        assert exc_info.value.errors == {"name": "must be at most 200 characters"}

    def test_create_user_with_oversized_name(self, service, acme, actor_for):
        with pytest.raises(ValidationError) as exc_info:
            service.create_user(actor_for(acme["admin"]), "D" * 201, "dan@acme.test", "hash", "staff")
        assert set(exc_info.value.errors) == {"name"}

    def test_rename_other_org_user_is_not_found(self, service, acme, beta, actor_for):
        with pytest.raises(UserNotFoundError):
            service.rename_user(actor_for(acme["admin"]), beta["staff"].id, "X")

    def test_main_admin_cannot_delete_self(self, service, acme, actor_for):
        with pytest.raises(AuthorizationError):
            service.delete_user(actor_for(acme["admin"]), acme["admin"].id)

    def test_delete_user_keeps_vouchers(
        self, service, session, deterministic_clock, acme, actor_for, tomorrow,
    ):
        voucher = VoucherService(session, deterministic_clock).create(
            actor_for(acme["bob"]), purpose="Taxi", amount=10, description="x", needed_by=tomorrow,
        )
        NotificationService(session, deterministic_clock).post(
            actor_for(acme["admin"]), "hello", acme["bob"].id,
        )
        service.delete_user(actor_for(acme["admin"]), acme["bob"].id)
        assert session.get(User, acme["bob"].id) is None
        kept = session.get(Voucher, voucher.id)
        assert kept is not None and kept.staff_name == "Bob"
        assert session.query(Notification).filter_by(recipient_id=acme["bob"].id).count() == 0


class TestDeleteOrganization:

    def test_cascade(self, service, session, deterministic_clock, acme, beta, actor_for, tomorrow):
        VoucherService(session, deterministic_clock).create(
            actor_for(acme["ada"]), purpose="Taxi", amount=10, description="x", needed_by=tomorrow,
        )
        NotificationService(session, deterministic_clock).post(actor_for(acme["admin"]), "bye")

        removed = service.delete_organization(actor_for(acme["admin"]))

        assert removed == {"notifications": 5, "vouchers": 1, "users": 6}
        assert session.get(Organization, acme["org"].id) is None
        assert session.query(User).filter_by(organization_id=beta["org"].id).count() == 3
        assert session.query(Voucher).count() == 0
