"""
Data factories for test data generation.

Factories use factory-boy to create realistic test data with sensible defaults.
All factories support async creation via create_async() method.

Usage:
    from tests.factories import UserFactory, OrganizationFactory

    # Create user
    user = await UserFactory.create_async(db_session, username="alice")

    # Create organization with its first admin
    org = await OrganizationFactory.create_with_admin_async(db_session, admin_id=user.id)
"""

from tests.factories.user import UserFactory
from tests.factories.organization import OrganizationFactory
from tests.factories.organization_member import OrganizationMemberFactory
from tests.factories.organization_ban import OrganizationBanFactory
from tests.factories.board import BoardFactory
from tests.factories.board_member import BoardMemberFactory
from tests.factories.invite import InviteFactory

__all__ = [
    "UserFactory",
    "OrganizationFactory",
    "OrganizationMemberFactory",
    "OrganizationBanFactory",
    "BoardFactory",
    "BoardMemberFactory",
    "InviteFactory",
]
