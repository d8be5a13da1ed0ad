from enum import Enum
from pathlib import Path
from typing import Any

from githubkit import GitHub
from githubkit.exception import GitHubException, RequestFailed
from pydantic import BaseModel, ConfigDict

from .errors import RemoteAPIError

UPLOADS_URL = "https://uploads.github.com/"


class FailureKind(str, Enum):
    NOT_FOUND = "not found"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate limited"
    ERROR = "error"

    @staticmethod
    def from_status(status: int | None, rate_limited: bool = False) -> "FailureKind":
        match status:
            case 404:
                return FailureKind.NOT_FOUND
            case 401:
                return FailureKind.UNAUTHORIZED
            case 429:
                return FailureKind.RATE_LIMITED
            case 403 if rate_limited:
                return FailureKind.RATE_LIMITED
            case _:
                return FailureKind.ERROR


def _rate_limited(response: Any) -> bool:
    # GitHub also answers 403 for missing permissions
    return (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "rate limit" in response.text.lower()
    )


class ApiFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str

    @staticmethod
    def from_exception(e: GitHubException) -> "ApiFailure":
        if not isinstance(e, RequestFailed):
            return ApiFailure(kind=FailureKind.ERROR, message=str(e))

        status = e.response.status_code
        kind = FailureKind.from_status(status, status == 403 and _rate_limited(e.response))
        return ApiFailure(kind=kind, message=str(e))

    def error(self, what: str) -> RemoteAPIError:
        return RemoteAPIError(f"{what}: {self.kind.value}: {self.message}")


class ReleaseAsset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    browser_download_url: str


class Release(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    tag_name: str
    body: str | None = None
    assets: tuple[ReleaseAsset, ...] = ()

    def find(self, name: str) -> ReleaseAsset | None:
        return find_asset(self.assets, name)


def find_asset(assets: tuple[ReleaseAsset, ...], name: str) -> ReleaseAsset | None:
    return next((a for a in assets if a.name == name), None)


def _asset(a: Any) -> ReleaseAsset:
    return ReleaseAsset(id=a.id, name=a.name, browser_download_url=a.browser_download_url)


def _release(r: Any) -> Release:
    return Release(
        id=r.id,
        tag_name=r.tag_name,
        body=r.body if isinstance(r.body, str) else None,
        assets=tuple(_asset(a) for a in r.assets),
    )


class ReleaseStore:
    """Release and asset operations on a single GitHub repository.

    Lookups return an :class:`ApiFailure` instead of raising so callers can
    decide whether a failure is fatal. Mutations raise :class:`RemoteAPIError`.

    Asset uploads are only accepted on the uploads host, so they go through a
    second client.
    """

    def __init__(
        self,
        repo: str,
        token: str | None = None,
        gh: GitHub | None = None,
        uploads: GitHub | None = None,
        **config: Any,
    ):
        self.owner, self.repo = repo.split("/", 1)
        self.gh = gh or GitHub(token, **config)
        self.uploads = uploads or gh or GitHub(token, base_url=UPLOADS_URL, **config)

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"

    def get_release(self, tag: str) -> Release | ApiFailure:
        try:
            return _release(
                self.gh.rest.repos.get_release_by_tag(self.owner, self.repo, tag).parsed_data
            )
        except GitHubException as e:
            return ApiFailure.from_exception(e)

    def list_assets(self, release_id: int) -> tuple[ReleaseAsset, ...] | ApiFailure:
        try:
            return tuple(
                _asset(a)
                for a in self.gh.rest.paginate(
                    self.gh.rest.repos.list_release_assets,
                    owner=self.owner,
                    repo=self.repo,
                    release_id=release_id,
                )
            )
        except GitHubException as e:
            return ApiFailure.from_exception(e)

    def create_release(self, tag: str, name: str, body: str) -> Release:
        try:
            return _release(
                self.gh.rest.repos.create_release(
                    self.owner, self.repo, tag_name=tag, name=name, body=body
                ).parsed_data
            )
        except GitHubException as e:
            raise ApiFailure.from_exception(e).error(f"Unable to create release {tag}") from e

    def upload_asset(self, release: Release, path: Path, name: str) -> ReleaseAsset:
        try:
            with open(path, "rb") as f:
                return _asset(
                    self.uploads.rest.repos.upload_release_asset(
                        self.owner,
                        self.repo,
                        release.id,
                        name=name,
                        data=f,
                        headers={"Content-Type": "application/octet-stream"},
                    ).parsed_data
                )
        except GitHubException as e:
            raise ApiFailure.from_exception(e).error(f"Unable to upload {name}") from e

    def delete_asset(self, asset: ReleaseAsset) -> None:
        try:
            self.gh.rest.repos.delete_release_asset(self.owner, self.repo, asset.id)
        except GitHubException as e:
            raise ApiFailure.from_exception(e).error(f"Unable to delete {asset.name}") from e

    def update_body(self, release: Release, body: str) -> None:
        try:
            self.gh.rest.repos.update_release(self.owner, self.repo, release.id, body=body)
        except GitHubException as e:
            raise ApiFailure.from_exception(e).error(
                f"Unable to update release {release.tag_name}"
            ) from e
