"""Models for Bitbucket API responses."""

from pydantic import BaseModel, ConfigDict, Field


class BitbucketModel(BaseModel):
    """Base model with common configuration.

    - populate_by_name: Allow both alias and field name in input
    - extra="ignore": Ignore unknown fields from API responses
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )


class User(BitbucketModel):
    """The signed-in user."""

    uuid: str | None = None
    username: str | None = None
    nickname: str | None = None
    display_name: str | None = None
    account_id: str | None = Field(default=None, alias="account_id")

    @property
    def name(self) -> str:
        """Best available name for display."""
        return self.display_name or self.nickname or self.username or "Unknown"
