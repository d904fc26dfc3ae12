import pytest

from campusdesk.authorization import (
    Action,
    ActorScope,
    Kind,
    authorize,
    can_create_notification,
    can_read_notification,
    ensure,
    normalize_recipient_type,
    readable_recipient_types,
    target,
)
from campusdesk.errors import ForbiddenError
from campusdesk.models import Role

ADMIN = ActorScope(role=Role.ADMIN, account_id="acc-admin")
COORDINATOR = ActorScope(role=Role.COORDINATOR, account_id="acc-coord", profile_id="coord-1", campus_id="north")
TEACHER = ActorScope(role=Role.TEACHER, account_id="acc-teacher", profile_id="teacher-1")
STUDENT = ActorScope(role=Role.STUDENT, account_id="acc-student", profile_id="student-1")


def test_admin_is_unrestricted_but_cannot_delete_itself():
    for kind in Kind:
        assert authorize(ADMIN, Action.DELETE, target(kind, owner_id="someone-else")).allowed
    decision = authorize(ADMIN, Action.DELETE, target(Kind.ACCOUNT, owner_id="acc-admin", role=Role.ADMIN))
    assert not decision.allowed
    assert decision.reason == "You cannot delete yourself"


@pytest.mark.parametrize("kind", [Kind.TEACHER, Kind.STUDENT, Kind.COURSE, Kind.ATTENDANCE, Kind.ASSESSMENT])
def test_coordinator_is_scoped_to_its_campus(kind):
    assert authorize(COORDINATOR, Action.UPDATE, target(kind, campus_ids=["north"])).allowed
    assert not authorize(COORDINATOR, Action.UPDATE, target(kind, campus_ids=["south"])).allowed
    assert not authorize(COORDINATOR, Action.READ, target(kind)).allowed


def test_coordinator_cannot_touch_admins_or_other_coordinators():
    admin_account = target(Kind.ACCOUNT, campus_ids=["north"], owner_id="acc-admin", role=Role.ADMIN)
    assert not authorize(COORDINATOR, Action.READ, admin_account).allowed

    peer = target(Kind.ACCOUNT, campus_ids=["north"], owner_id="acc-other", role=Role.COORDINATOR)
    assert not authorize(COORDINATOR, Action.READ, peer).allowed

    itself = target(Kind.ACCOUNT, campus_ids=["north"], owner_id="acc-coord", role=Role.COORDINATOR)
    assert authorize(COORDINATOR, Action.UPDATE, itself).allowed
    assert not authorize(COORDINATOR, Action.DELETE, itself).allowed

    assert not authorize(COORDINATOR, Action.READ, target(Kind.COORDINATOR, owner_id="coord-2")).allowed


def test_teacher_only_acts_on_courses_it_teaches():
    own = target(Kind.ASSESSMENT, campus_ids=["north"], teacher_ids=["teacher-1", "teacher-9"])
    other = target(Kind.ASSESSMENT, campus_ids=["north"], teacher_ids=["teacher-2"])
    assert authorize(TEACHER, Action.CREATE, own).allowed
    assert not authorize(TEACHER, Action.CREATE, other).allowed

    course = target(Kind.COURSE, teacher_ids=["teacher-1"])
    assert authorize(TEACHER, Action.READ, course).allowed
    assert not authorize(TEACHER, Action.UPDATE, course).allowed

    assert authorize(TEACHER, Action.READ, target(Kind.STUDENT, teacher_ids=["teacher-1"])).allowed
    assert not authorize(TEACHER, Action.READ, target(Kind.STUDENT, teacher_ids=["teacher-2"])).allowed


def test_student_reads_only_its_own_records():
    assert authorize(STUDENT, Action.UPDATE, target(Kind.STUDENT, owner_id="student-1")).allowed
    assert not authorize(STUDENT, Action.READ, target(Kind.STUDENT, owner_id="student-2")).allowed
    assert authorize(STUDENT, Action.READ, target(Kind.ATTENDANCE, owner_id="student-1")).allowed
    assert not authorize(STUDENT, Action.CREATE, target(Kind.ATTENDANCE, owner_id="student-1")).allowed
    assert authorize(STUDENT, Action.CREATE, target(Kind.DOCUMENT, owner_id="student-1")).allowed
    assert not authorize(STUDENT, Action.READ, target(Kind.COURSE)).allowed


def test_ensure_raises_forbidden_with_reason():
    with pytest.raises(ForbiddenError) as exc_info:
        ensure(authorize(TEACHER, Action.READ, target(Kind.COURSE, teacher_ids=["teacher-2"])))
    assert exc_info.value.message == "Not authorized for this course"


def test_notification_create_matrix():
    assert can_create_notification(Role.ADMIN, "admin")
    assert can_create_notification(Role.COORDINATOR, "all")
    assert not can_create_notification(Role.COORDINATOR, "admin")
    assert can_create_notification(Role.TEACHER, "admin")
    assert not can_create_notification(Role.TEACHER, "teachers")
    assert not can_create_notification(Role.STUDENT, "all")


def test_recipient_aliases_are_normalized():
    assert normalize_recipient_type(" Principle ") == "principals"
    assert can_create_notification(Role.TEACHER, "principal")


def test_readable_types_per_role():
    assert readable_recipient_types(Role.STUDENT) == ["all"]
    assert "admin" not in readable_recipient_types(Role.COORDINATOR)
    assert set(readable_recipient_types(Role.TEACHER)) == {"teachers", "both", "all"}


def test_teacher_sees_own_and_leadership_broadcasts_but_not_peers():
    own = {"recipient_type": "teachers", "created_by": "acc-teacher", "created_by_role": "teacher"}
    own_to_admin = {"recipient_type": "admin", "created_by": "acc-teacher", "created_by_role": "teacher"}
    peer = {"recipient_type": "teachers", "created_by": "acc-peer", "created_by_role": "teacher"}
    from_admin = {"recipient_type": "teachers", "created_by": "acc-admin", "created_by_role": "admin"}
    to_leadership = {"recipient_type": "principals", "created_by": "acc-admin", "created_by_role": "admin"}

    assert can_read_notification(TEACHER, own)
    assert can_read_notification(TEACHER, own_to_admin)
    assert not can_read_notification(TEACHER, peer)
    assert can_read_notification(TEACHER, from_admin)
    assert not can_read_notification(TEACHER, to_leadership)


def test_non_teachers_read_by_recipient_type_only():
    note = {"recipient_type": "all", "created_by": "acc-peer", "created_by_role": "teacher"}
    assert can_read_notification(STUDENT, note)
    assert not can_read_notification(STUDENT, {**note, "recipient_type": "both"})
    assert can_read_notification(COORDINATOR, {**note, "recipient_type": "teachers"})
