"""Role-scoped authorization.

Two independent matrices live here:

* :func:`authorize` answers "may this actor touch this record". It is a pure
  function of the actor's resolved scope and a :class:`Target` describing the
  record (its kind, the campus(es) owning it, the teachers of the course it
  hangs off, and its owner).
* The notification functions answer "is this actor in the audience of this
  broadcast", based only on role and ``recipient_type``.

Callers resolve scopes and targets from the database (see :mod:`campusdesk.scope`)
and pass the resulting :class:`Decision` to :func:`ensure`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from .errors import ForbiddenError
from .models import Role


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Kind(str, Enum):
    ACCOUNT = "account"
    CAMPUS = "campus"
    COORDINATOR = "coordinator"
    TEACHER = "teacher"
    STUDENT = "student"
    COURSE = "course"
    ATTENDANCE = "attendance"
    ASSESSMENT = "assessment"
    DOCUMENT = "document"
    LESSON_PLAN = "lesson_plan"


@dataclass(frozen=True)
class ActorScope:
    role: Role
    account_id: str
    profile_id: Optional[str] = None
    campus_id: Optional[str] = None


@dataclass(frozen=True)
class Target:
    kind: Kind
    campus_ids: FrozenSet[str] = field(default_factory=frozenset)
    teacher_ids: FrozenSet[str] = field(default_factory=frozenset)
    owner_id: Optional[str] = None
    role: Optional[Role] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


def target(kind: Kind, campus_ids: Iterable[Optional[str]] = (), teacher_ids: Iterable[str] = (),
           owner_id: Optional[str] = None, role: Optional[Role] = None) -> Target:
    return Target(
        kind=kind,
        campus_ids=frozenset(c for c in campus_ids if c),
        teacher_ids=frozenset(t for t in teacher_ids if t),
        owner_id=owner_id,
        role=role,
    )


def _authorize_admin(actor: ActorScope, action: Action, tgt: Target) -> Decision:
    if tgt.kind == Kind.ACCOUNT and action == Action.DELETE and tgt.owner_id == actor.account_id:
        return deny("You cannot delete yourself")
    return ALLOW


_CAMPUS_SCOPED = {Kind.TEACHER, Kind.STUDENT, Kind.COURSE, Kind.ATTENDANCE, Kind.ASSESSMENT}


def _authorize_coordinator(actor: ActorScope, action: Action, tgt: Target) -> Decision:
    in_campus = actor.campus_id is not None and actor.campus_id in tgt.campus_ids
    if tgt.kind == Kind.ACCOUNT:
        if tgt.role == Role.ADMIN:
            return deny("Coordinators cannot act on admin accounts")
        if tgt.role == Role.COORDINATOR:
            if tgt.owner_id == actor.account_id and action in (Action.READ, Action.UPDATE):
                return ALLOW
            return deny("Coordinators cannot act on other coordinators")
        return ALLOW if in_campus else deny("Account is not in your campus")
    if tgt.kind == Kind.COORDINATOR:
        if tgt.owner_id == actor.profile_id and action in (Action.READ, Action.UPDATE):
            return ALLOW
        return deny("Coordinators cannot act on other coordinators")
    if tgt.kind == Kind.CAMPUS:
        if action == Action.READ and in_campus:
            return ALLOW
        return deny("Not authorized for this campus")
    if tgt.kind in _CAMPUS_SCOPED:
        return ALLOW if in_campus else deny(f"{tgt.kind.value.replace('_', ' ').capitalize()} not in your campus")
    if tgt.kind == Kind.DOCUMENT:
        if action == Action.READ and in_campus:
            return ALLOW
        return deny("Not authorized for this document")
    if tgt.kind == Kind.LESSON_PLAN:
        return ALLOW if tgt.owner_id == actor.account_id else deny("Not authorized for this lesson plan")
    return deny("Not authorized")


def _authorize_teacher(actor: ActorScope, action: Action, tgt: Target) -> Decision:
    teaches = actor.profile_id is not None and actor.profile_id in tgt.teacher_ids
    if tgt.kind == Kind.ACCOUNT:
        if tgt.owner_id == actor.account_id and action in (Action.READ, Action.UPDATE):
            return ALLOW
        return deny("You can only access your own account")
    if tgt.kind == Kind.TEACHER:
        if tgt.owner_id == actor.profile_id and action in (Action.READ, Action.UPDATE):
            return ALLOW
        return deny("You can only access your own profile")
    if tgt.kind == Kind.COURSE:
        if action == Action.READ and teaches:
            return ALLOW
        return deny("Not authorized for this course")
    if tgt.kind in (Kind.ATTENDANCE, Kind.ASSESSMENT):
        return ALLOW if teaches else deny("Not authorized for this course")
    if tgt.kind == Kind.STUDENT:
        if action == Action.READ and teaches:
            return ALLOW
        return deny("Student is not enrolled in your courses")
    if tgt.kind == Kind.LESSON_PLAN:
        return ALLOW if tgt.owner_id == actor.account_id else deny("Not authorized for this lesson plan")
    return deny("Not authorized")


def _authorize_student(actor: ActorScope, action: Action, tgt: Target) -> Decision:
    own_profile = actor.profile_id is not None and tgt.owner_id == actor.profile_id
    if tgt.kind == Kind.ACCOUNT:
        if tgt.owner_id == actor.account_id and action == Action.READ:
            return ALLOW
        return deny("You can only view your own account")
    if tgt.kind == Kind.STUDENT:
        if own_profile and action in (Action.READ, Action.UPDATE):
            return ALLOW
        return deny("You can only access your own profile")
    if tgt.kind == Kind.DOCUMENT:
        if own_profile and action in (Action.READ, Action.CREATE):
            return ALLOW
        return deny("Not authorized to view these documents")
    if tgt.kind in (Kind.ATTENDANCE, Kind.ASSESSMENT):
        if own_profile and action == Action.READ:
            return ALLOW
        return deny("Students have read-only access to their own records")
    if tgt.kind == Kind.LESSON_PLAN:
        return ALLOW if tgt.owner_id == actor.account_id else deny("Not authorized for this lesson plan")
    return deny("Not authorized")


_RULES = {
    Role.ADMIN: _authorize_admin,
    Role.COORDINATOR: _authorize_coordinator,
    Role.TEACHER: _authorize_teacher,
    Role.STUDENT: _authorize_student,
}


def authorize(actor: ActorScope, action: Action, tgt: Target) -> Decision:
    return _RULES[actor.role](actor, action, tgt)


def ensure(decision: Decision) -> None:
    if not decision.allowed:
        raise ForbiddenError(decision.reason or "Not authorized")


# ---------------------------------------------------------------------------
# Notification audience matrix
# ---------------------------------------------------------------------------

# "principals" addresses campus leadership, which in this system are coordinators.
LEADERSHIP_ROLES = {Role.ADMIN, Role.COORDINATOR}

RECIPIENT_ALIASES = {"principle": "principals", "principal": "principals"}

CREATABLE_BY_ROLE: Dict[Role, List[str]] = {
    Role.ADMIN: ["admin", "principals", "teachers", "both", "all"],
    Role.COORDINATOR: ["principals", "teachers", "both", "all"],
    Role.TEACHER: ["principals", "admin", "both"],
    Role.STUDENT: [],
}

READABLE_BY_ROLE: Dict[Role, List[str]] = {
    Role.ADMIN: ["admin", "principals", "teachers", "both", "all"],
    Role.COORDINATOR: ["principals", "teachers", "both", "all"],
    Role.TEACHER: ["teachers", "both", "all"],
    Role.STUDENT: ["all"],
}


def normalize_recipient_type(value: Optional[str]) -> str:
    value = str(value or "").strip().lower()
    return RECIPIENT_ALIASES.get(value, value)


def can_create_notification(role: Role, recipient_type: str) -> bool:
    return normalize_recipient_type(recipient_type) in CREATABLE_BY_ROLE[role]


def readable_recipient_types(role: Role) -> List[str]:
    return list(READABLE_BY_ROLE[role])


def can_read_notification(actor: ActorScope, notification: Mapping[str, Any]) -> bool:
    """Teachers see their own notifications plus leadership broadcasts aimed at them.

    A broadcast to ``teachers`` authored by another teacher stays invisible to teachers.
    """
    recipient_type = normalize_recipient_type(notification.get("recipient_type"))
    if actor.role == Role.TEACHER:
        if notification.get("created_by") == actor.account_id:
            return True
        author_role = notification.get("created_by_role")
        return recipient_type in READABLE_BY_ROLE[Role.TEACHER] and author_role in {r.value for r in LEADERSHIP_ROLES}
    return recipient_type in READABLE_BY_ROLE[actor.role]
