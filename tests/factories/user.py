"""
User factory for test data generation.
"""

import factory
from sqlalchemy.ext.asyncio import AsyncSession

from vision.models.user import User


class UserFactory(factory.Factory):
    """
    Factory for User model.

    Usernames and emails are unique per test run.
    """

    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user{n}")
    name = factory.Faker("name")
    email = factory.Sequence(lambda n: f"user{n}@test.com")
    token_version = 1

    @classmethod
    async def create_async(
        cls,
        db_session: AsyncSession,
        **kwargs
    ) -> User:
        """
        Create user in database asynchronously.

        Args:
            db_session: AsyncSession instance
            **kwargs: Override factory attributes

        Returns:
            User instance (flushed, not committed)

        Usage:
            user = await UserFactory.create_async(
                db_session,
                username="alice",
                name="Alice"
            )
        """
        instance = cls.build(**kwargs)
        db_session.add(instance)
        await db_session.flush()  # Get ID without committing transaction
        return instance
