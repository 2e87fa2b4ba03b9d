"""
GitHub Models
=============
Subset of the GitHub REST payloads the dashboard displays.
Unknown fields in API responses are ignored.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GitHubOwner(BaseModel):
    login: str
    avatar_url: Optional[str] = None


class GitHubRepo(BaseModel):
    id: int
    name: str
    full_name: str
    description: Optional[str] = None
    html_url: str
    stargazers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    owner: GitHubOwner
    language: Optional[str] = None
    created_at: str
    updated_at: str


class GitHubContent(BaseModel):
    name: str
    path: str
    sha: str
    size: Optional[int] = None
    content_type: str = Field(alias="type")  # file, dir, symlink, submodule
    download_url: Optional[str] = None
    html_url: Optional[str] = None
    content: Optional[str] = None
    encoding: Optional[str] = None
    url: str

    model_config = ConfigDict(populate_by_name=True)
