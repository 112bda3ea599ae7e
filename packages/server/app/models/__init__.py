# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import CreatedAtMixin, UUIDMixin  # noqa: F401
from .identity import Identity  # noqa: F401
from .profile import Profile  # noqa: F401
from .user_role import RoleAssignment  # noqa: F401
from .task import Task  # noqa: F401
from .notification import Notification  # noqa: F401
