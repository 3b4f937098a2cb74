from dataclasses import dataclass, field
from schooldesk.models import SchoolClass, TeacherClass


@dataclass(frozen=True)
class Actor:
    """The authenticated staff member behind the current request."""
    user_id: int
    role: str
    class_ids: frozenset = field(default_factory=frozenset)

    @property
    def is_admin(self):
        return self.role == "admin"

    def can_access_class(self, class_id):
        if self.is_admin:
            return True
        return class_id is not None and int(class_id) in self.class_ids


def resolve_actor(user):
    if not user:
        raise ValueError("No user provided")

    role_name = user.role_name
    if role_name == "admin":
        return Actor(user_id=user.id, role=role_name)

    assigned = TeacherClass.query.with_entities(TeacherClass.class_id).filter_by(teacher_id=user.id).all()
    return Actor(user_id=user.id, role=role_name, class_ids=frozenset(row.class_id for row in assigned))


def get_allowed_class_ids(actor, requested_ids=None):
    """
    Returns the class ids the actor may read or write.
    - Admins can access all classes, or exactly the requested ones.
    - Teachers are restricted to their assigned classes.
    - Raises PermissionError when a requested class is outside the allowed set.
    """
    if isinstance(requested_ids, int):
        requested_ids = [requested_ids]
    elif requested_ids is None:
        requested_ids = []

    if actor.is_admin:
        return requested_ids or [c.id for c in SchoolClass.query.all()]

    if not requested_ids:
        return sorted(actor.class_ids)

    if any(int(class_id) not in actor.class_ids for class_id in requested_ids):
        raise PermissionError("Access denied to one or more requested classes")

    return [int(class_id) for class_id in requested_ids]
