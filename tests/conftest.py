from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from prebuilt.config import MatrixSettings, ReleaseSettings
from prebuilt.github import ApiFailure, FailureKind, Release, ReleaseAsset


class FakeStore:
    """In-memory stand-in for ReleaseStore that records every call."""

    def __init__(self, releases: dict[str, Release] | None = None, failure: ApiFailure | None = None):
        self.releases = releases or {}
        self.failure = failure
        self.calls: list[tuple] = []
        self._next_id = 1000

    def __str__(self) -> str:
        return "fake/repo"

    def get_release(self, tag):
        self.calls.append(("get_release", tag))
        if self.failure:
            return self.failure
        if tag not in self.releases:
            return ApiFailure(kind=FailureKind.NOT_FOUND, message="Not Found")
        return self.releases[tag]

    def list_assets(self, release_id):
        self.calls.append(("list_assets", release_id))
        for r in self.releases.values():
            if r.id == release_id:
                return r.assets
        return ApiFailure(kind=FailureKind.NOT_FOUND, message="Not Found")

    def create_release(self, tag, name, body):
        self.calls.append(("create_release", tag, name))
        self.releases[tag] = Release(id=len(self.releases) + 1, tag_name=tag, body=body)
        return self.releases[tag]

    def upload_asset(self, release, path, name):
        self.calls.append(("upload_asset", name))
        self._next_id += 1
        return ReleaseAsset(
            id=self._next_id,
            name=name,
            browser_download_url=f"https://example.invalid/{name}",
        )

    def delete_asset(self, asset):
        self.calls.append(("delete_asset", asset.name))

    def update_body(self, release, body):
        self.calls.append(("update_body", release.id))
        self.body = body

    def names(self, call: str) -> list[str]:
        return [c[1] for c in self.calls if c[0] == call]


def asset(name: str, id: int = 1) -> ReleaseAsset:
    return ReleaseAsset(
        id=id,
        name=name,
        browser_download_url=f"https://github.com/tamatebako/tebako-runtime-ruby/releases/download/v1.0/{name}",
    )


def descriptor(ruby: list[str], env: list[dict]) -> dict:
    return {"full": {"ruby": ruby, "env": env}}


EMPTY = descriptor([], [])


@pytest.fixture
def descriptors(monkeypatch):
    """Serve platform descriptors keyed by family; unset families are empty."""
    docs: dict[str, dict | Exception | str] = {}

    def get(url, **kw):
        family = url.rsplit("/", 1)[-1].removesuffix(".json")
        doc = docs.get(family, EMPTY)
        r = MagicMock()
        if isinstance(doc, Exception):
            r.raise_for_status.side_effect = doc
        elif isinstance(doc, str):
            r.json.side_effect = requests.JSONDecodeError("Expecting value", doc, 0)
        else:
            r.json.return_value = doc
        return r

    monkeypatch.setattr("prebuilt.matrix.requests.get", get)
    return docs


@pytest.fixture
def matrix_settings(tmp_path: Path) -> MatrixSettings:
    return MatrixSettings(version="1.0", output=tmp_path / "build-matrix.json")


@pytest.fixture
def release_settings(tmp_path: Path) -> ReleaseSettings:
    packages = tmp_path / "runtime-packages"
    packages.mkdir()
    return ReleaseSettings(token="t0ken", version="1.0", packages_dir=packages)
