from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import the models so they are registered with Base
from vision.models import user, organization, board  # noqa: E402,F401
from vision.models import (  # noqa: E402,F401
    organization_member,
    organization_ban,
    board_member,
    invite,
    notification,
    audit_log,
)
