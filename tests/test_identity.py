from datetime import datetime, timedelta, timezone

import pytest

from spiral.core.clock import utcnow
from spiral.core.errors import AuthenticationFailed, Conflict, NotFound, PermissionDenied, ValidationFailed
from spiral.models.enums import EmailChangeReason
from spiral.models.person import Customer, EmailHistory, Person
from spiral.services import identity, rbac


def test_registration_creates_the_four_records(db, customer):
    profile = identity.profile(db, customer.id)

    assert profile.email == "alice@example.com"
    assert profile.roles == ["customer"]
    assert profile.is_customer and not profile.is_employee and not profile.is_artist
    row = identity.current_email_row(db, customer.id)
    assert row.change_reason == EmailChangeReason.INITIAL


def test_duplicate_email_is_a_conflict(db, register):
    register("alice", "a@x.com")

    with pytest.raises(Conflict):
        register("bob", "  A@X.com ")

    assert db.query(Person).count() == 1


def test_duplicate_username_is_a_conflict(db, register):
    register("alice", "a@x.com")

    with pytest.raises(Conflict):
        register("alice", "b@x.com")


def test_registration_is_all_or_nothing(db, monkeypatch):
    def fail(*args, **kwargs):
        raise RuntimeError("role table unavailable")

    monkeypatch.setattr(identity.rbac, "attach_role", fail)

    with pytest.raises(RuntimeError):
        identity.register_customer(
            db,
            identity.Registration(
                first_name="Ann", last_name="Lee", email="ann@x.com", username="ann", password="secret123"
            ),
        )

    assert db.query(Person).count() == 0
    assert db.query(Customer).count() == 0
    assert db.query(EmailHistory).count() == 0


def test_update_email_closes_the_current_row(db, customer):
    identity.update_email(db, customer.id, "new@example.com")

    history = identity.email_history(db, customer.id)
    assert [h.email for h in history] == ["alice@example.com", "new@example.com"]
    assert history[0].effective_to is not None
    assert history[1].effective_to is None
    assert history[1].change_reason == EmailChangeReason.USER_UPDATED
    assert identity.current_email(db, customer.id) == "new@example.com"


def test_update_email_to_someone_elses_active_address_fails(db, register):
    alice = register("alice")
    register("bob")

    with pytest.raises(Conflict):
        identity.update_email(db, alice.id, "bob@example.com")

    assert identity.current_email(db, alice.id) == "alice@example.com"


def test_update_email_to_same_address_is_a_noop(db, customer):
    identity.update_email(db, customer.id, "ALICE@example.com")

    assert len(identity.email_history(db, customer.id)) == 1


def test_released_address_can_be_reused(db, register):
    alice = register("alice")
    bob = register("bob")
    identity.update_email(db, alice.id, "alice2@example.com", EmailChangeReason.ADMIN_UPDATED)

    identity.update_email(db, bob.id, "alice@example.com")

    assert identity.current_email(db, bob.id) == "alice@example.com"


def test_verify_email_appends_a_verified_row(db, customer):
    row = identity.verify_email(db, customer.id)

    assert row.is_verified
    assert row.email == "alice@example.com"
    assert row.change_reason == EmailChangeReason.VERIFICATION
    assert len(identity.email_history(db, customer.id)) == 2


def test_authenticate(db, customer):
    assert identity.authenticate(db, "alice", "correct horse").id == customer.id

    with pytest.raises(AuthenticationFailed):
        identity.authenticate(db, "alice", "wrong")
    with pytest.raises(AuthenticationFailed):
        identity.authenticate(db, "nobody", "correct horse")


def test_update_person_fields(db, customer):
    person = identity.update_person(db, customer.id, {"phone_number": "555-0100", "is_active": False})

    assert person.phone_number == "555-0100"
    assert person.is_active is False
    with pytest.raises(AuthenticationFailed):
        identity.authenticate(db, "alice", "correct horse")


def test_update_person_with_a_bad_field_changes_nothing(db, customer):
    with pytest.raises(ValidationFailed):
        identity.update_person(db, customer.id, {"phone_number": "555-0100", "bogus": 1})
    with pytest.raises(ValidationFailed):
        identity.update_person(db, customer.id, {"phone_number": "555-0100", "first_name": "  "})

    db.commit()
    db.refresh(customer)
    assert customer.phone_number is None
    assert customer.first_name == "Alice"


def test_assign_role_twice_is_a_conflict(db, customer, admin):
    rbac.assign_role(db, customer.id, "artist", assigned_by=admin.id)

    with pytest.raises(Conflict):
        rbac.assign_role(db, customer.id, "artist")

    assignment = [a for a in rbac.assignments(db, customer.id) if a.role.name == "artist"][0]
    assert assignment.assigned_by == admin.id


def test_revoke_missing_role_is_not_found(db, customer):
    with pytest.raises(NotFound):
        rbac.revoke_role(db, customer.id, "admin")


def test_permission_check_follows_roles(db, customer, admin):
    assert rbac.has_permission(db, customer.id, "cart.manage")
    assert not rbac.has_permission(db, customer.id, "users.manage")
    assert rbac.has_permission(db, admin.id, "users.manage")
    assert rbac.has_permission(db, admin.id, "coupons.manage")

    with pytest.raises(PermissionDenied):
        rbac.require_permission(db, customer.id, "products.create")


def test_expired_assignment_grants_nothing(db, customer):
    rbac.assign_role(db, customer.id, "admin", expires_at=utcnow() - timedelta(minutes=1))

    assert not rbac.has_permission(db, customer.id, "users.manage")
    assert "admin" not in rbac.active_role_names(db, customer.id)


def test_future_expiry_is_still_active(db, customer):
    rbac.assign_role(db, customer.id, "admin", expires_at=utcnow() + timedelta(days=1))

    assert rbac.has_permission(db, customer.id, "users.manage")


def test_expiry_with_utc_offset_is_stored_as_utc(db, customer):
    plus_five = timezone(timedelta(hours=5))
    expired = datetime.now(plus_five) - timedelta(hours=1)

    assignment = rbac.assign_role(db, customer.id, "admin", expires_at=expired)

    db.refresh(assignment)
    assert assignment.expires_at.tzinfo is None
    assert assignment.expires_at < utcnow()
    assert not rbac.has_permission(db, customer.id, "users.manage")


def test_hire_date_with_utc_offset_is_stored_as_utc(db, customer):
    hired = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=5)))

    employee = identity.add_employee(db, customer.id, employee_number="E-002", hire_date=hired)

    db.refresh(employee)
    assert employee.hire_date == datetime(2024, 1, 1, 7, 0)


def test_revoked_role_takes_effect_immediately(db, customer):
    rbac.assign_role(db, customer.id, "admin")
    assert rbac.has_permission(db, customer.id, "users.manage")

    rbac.revoke_role(db, customer.id, "admin")

    assert not rbac.has_permission(db, customer.id, "users.manage")


def test_add_employee_grants_staff_permissions(db, customer):
    identity.add_employee(db, customer.id, employee_number="E-001", job_title="Clerk")

    profile = identity.profile(db, customer.id)
    assert profile.is_employee
    assert "employee" in profile.roles
    assert rbac.has_permission(db, customer.id, "products.create")
    assert rbac.has_permission(db, customer.id, "orders.manage")

    with pytest.raises(Conflict):
        identity.add_employee(db, customer.id)
