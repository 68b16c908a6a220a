"""Subset of the Gitea push webhook payload consumed by the dispatcher.

Reference: https://docs.gitea.com/usage/webhooks
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GiteaUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str = ""
    username: str = ""

    @property
    def display_name(self) -> str:
        return self.login or self.username


class GiteaRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str = Field(min_length=1)
    name: str = ""
    html_url: str = ""


class GiteaCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    message: str = ""


class PushEvent(BaseModel):
    """A push notification: which repository, and the secret the sender used."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    secret: str = ""
    ref: str = ""
    before: str = ""
    after: str = ""
    repository: GiteaRepository
    pusher: GiteaUser | None = None
    sender: GiteaUser | None = None
    commits: list[GiteaCommit] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return self.repository.full_name

    @property
    def branch(self) -> str:
        return self.ref.removeprefix("refs/heads/")
