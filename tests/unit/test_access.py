import pytest

from villa_booking.core.access import AccessControl
from villa_booking.db.models import Booking, BookingStatus, User, UserRole


@pytest.fixture()
def access():
    return AccessControl()


def _user(user_id: int, role: UserRole = UserRole.USER) -> User:
    return User(id=user_id, email=f"user{user_id}@example.com", hashed_password="x", role=role.value)


def _booking(owner_id: int, status: BookingStatus) -> Booking:
    return Booking(id=1, added_by=owner_id, status=status.value)


def test_owner_may_edit_only_pending_booking(access):
    owner = _user(1)

    assert access.can_modify(owner, _booking(1, BookingStatus.PENDING)) is True
    assert access.can_modify(owner, _booking(1, BookingStatus.APPROVED)) is False


def test_other_user_cannot_see_or_touch_booking(access):
    stranger = _user(2)
    booking = _booking(1, BookingStatus.PENDING)

    assert access.can_view(stranger, booking) is False
    assert access.can_modify(stranger, booking) is False
    assert access.can_cancel(stranger, booking) is False


def test_admin_may_do_everything_on_bookings(access):
    admin = _user(3, UserRole.ADMIN)
    booking = _booking(1, BookingStatus.APPROVED)

    assert access.can_view(admin, booking) is True
    assert access.can_modify(admin, booking) is True
    assert access.can_cancel(admin, booking) is True
    assert access.can_approve(admin) is True
    assert access.can_manage_users(admin) is True


def test_owner_may_cancel_approved_booking(access):
    assert access.can_cancel(_user(1), _booking(1, BookingStatus.APPROVED)) is True


def test_only_super_admin_changes_roles_of_others(access):
    super_admin = _user(1, UserRole.SUPER_ADMIN)
    admin = _user(2, UserRole.ADMIN)

    assert access.can_change_role(super_admin, admin) is True
    assert access.can_change_role(super_admin, super_admin) is False
    assert access.can_change_role(admin, super_admin) is False
    assert access.can_approve(_user(4)) is False
