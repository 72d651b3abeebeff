from villa_booking.db.models import Booking, BookingStatus, User


class AccessControl:
    """Answers whether an actor may perform a booking or user mutation.

    Routes ask these questions once; nothing below the HTTP layer looks at
    roles.
    """

    def is_admin(self, actor: User) -> bool:
        return actor.is_admin

    def is_super_admin(self, actor: User) -> bool:
        return actor.is_super_admin

    def is_owner(self, actor: User, booking: Booking) -> bool:
        return booking.added_by == actor.id

    def can_view(self, actor: User, booking: Booking) -> bool:
        return self.is_admin(actor) or self.is_owner(actor, booking)

    def can_modify(self, actor: User, booking: Booking) -> bool:
        if self.is_admin(actor):
            return True
        return self.is_owner(actor, booking) and booking.status == BookingStatus.PENDING.value

    def can_cancel(self, actor: User, booking: Booking) -> bool:
        return self.is_admin(actor) or self.is_owner(actor, booking)

    def can_approve(self, actor: User) -> bool:
        return self.is_admin(actor)

    def can_manage_users(self, actor: User) -> bool:
        return self.is_admin(actor)

    def can_change_role(self, actor: User, target: User) -> bool:
        return self.is_super_admin(actor) and actor.id != target.id


access_control = AccessControl()


def get_access_control() -> AccessControl:
    return access_control
