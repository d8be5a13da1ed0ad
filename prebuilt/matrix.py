import json
import re
from pathlib import Path

import requests
from actions import core
from pydantic import ValidationError

from .config import (
    FAMILIES,
    Architecture,
    BuildJob,
    EnvironmentRecord,
    Matrix,
    MatrixSettings,
    Platform,
    PlatformDescriptor,
    ReleaseInfo,
)
from .errors import FetchError, ParseError, PatternExtractionError
from .github import ApiFailure, FailureKind, ReleaseAsset, ReleaseStore, find_asset
from .utils import action, action_group

MACOS_PATTERN = r"macos-(\d+)"
UBUNTU_PATTERN = r"ubuntu-(\d+\.\d+)"


def _extract(pattern: str, os: str) -> str:
    if m := re.search(pattern, os):
        return m.group(1)
    raise PatternExtractionError("os", os, pattern)


def platform_name(env: EnvironmentRecord) -> str:
    match env.platform:
        case Platform.MACOS:
            return f"macos{_extract(MACOS_PATTERN, env.os)}"
        case Platform.UBUNTU:
            return f"ubuntu{_extract(UBUNTU_PATTERN, env.os)}"
        case Platform.ALPINE:
            if not env.alpine_ver:
                raise PatternExtractionError("ALPINE_VER", env.alpine_ver, "ALPINE_VER")
            return f"alpine{env.alpine_ver}"
        case Platform.WINDOWS:
            return "windows"
        case _:
            raise ValueError(f"Environment is not tagged with a platform: {env.os}")


def fetch_descriptor(url: str) -> Matrix:
    try:
        r = requests.get(url, timeout=30)
        r.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"Failed to fetch matrix file {url}: {e}") from e

    try:
        return PlatformDescriptor.model_validate(r.json()).full
    except (ValueError, ValidationError) as e:
        raise ParseError(f"Invalid JSON response from {url}: {e}") from e


class MatrixBuilder:
    def __init__(self, settings: MatrixSettings, store: ReleaseStore):
        self.settings = settings
        self.store = store

    def load_matrices(self) -> dict[str, Matrix]:
        matrices = {}
        for family in FAMILIES:
            url = self.settings.descriptor_url(family)
            core.info(f"Fetching {url}")
            matrices[family] = fetch_descriptor(url)
        return matrices

    def release_assets(self) -> tuple[ReleaseAsset, ...]:
        """Snapshot of the assets already published for this version.

        Lookup failures are never fatal: the matrix is still usable to drive
        a fresh build of every package.
        """
        s = self.settings

        if s.force_rebuild and s.skip_existing_lookup_on_force_rebuild:
            core.info("Force rebuild requested, not checking existing release assets")
            return ()

        core.info(f"Checking release {s.tag} in {self.store}")

        release = self.store.get_release(s.tag)
        if isinstance(release, ApiFailure):
            self._warn(release)
            return ()

        match self.store.list_assets(release.id):
            case ApiFailure() as failure:
                self._warn(failure)
                return ()
            case assets:
                core.info(f"Found {len(assets)} existing assets")
                return assets

    def _warn(self, failure: ApiFailure) -> None:
        match failure.kind:
            case FailureKind.NOT_FOUND:
                core.warning(f"Release {self.settings.tag} not found in {self.store}")
            case FailureKind.UNAUTHORIZED:
                core.warning(f"Invalid GitHub token or no access to {self.store}")
            case FailureKind.RATE_LIMITED:
                core.warning("GitHub API rate limit exceeded")
            case _:
                core.warning(f"GitHub API error: {failure.message}")

    def job(
        self,
        ruby_ver: str,
        env: EnvironmentRecord,
        arch: Architecture,
        assets: tuple[ReleaseAsset, ...],
    ) -> BuildJob:
        name = platform_name(env)
        filename = f"tebako-ruby-{self.settings.version}-{ruby_ver}-{name}-{arch.value}"

        if env.platform == Platform.WINDOWS:
            filename += self.settings.windows_extension

        asset = find_asset(assets, filename)

        return BuildJob(
            ruby_ver=ruby_ver,
            os=env.os,
            platform=env.platform,
            platform_name=name,
            arch=arch,
            filename=filename,
            release=ReleaseInfo(url=asset.browser_download_url) if asset else None,
        )

    def build(self) -> list[BuildJob]:
        matrices = self.load_matrices()
        assets = self.release_assets()

        ruby_versions = list(dict.fromkeys(v for m in matrices.values() for v in m.ruby))
        envs = [e.tagged(family) for family, m in matrices.items() for e in m.env]

        jobs: dict[str, BuildJob] = {}

        for ruby_ver in ruby_versions:
            for env in envs:
                for arch in env.platform.archs:
                    job = self.job(ruby_ver, env, arch, assets)
                    jobs.setdefault(job.filename, job)

        return list(jobs.values())


def dump(jobs: list[BuildJob]) -> dict:
    return {"include": [j.model_dump(mode="json") for j in jobs]}


def write(jobs: list[BuildJob], path: str | Path) -> None:
    with open(path, "w") as f:
        json.dump(dump(jobs), f)


def build(version: str, force_rebuild: bool = False, **kw) -> list[BuildJob]:
    settings = MatrixSettings.from_env(version=version, force_rebuild=force_rebuild, **kw)
    jobs = MatrixBuilder(settings, ReleaseStore(settings.repo, settings.token)).build()
    write(jobs, settings.output)
    return jobs


@action
def matrix():
    settings = MatrixSettings.from_env()
    builder = MatrixBuilder(settings, ReleaseStore(settings.repo, settings.token))

    jobs = builder.build()

    with action_group(f"Build matrix ({len(jobs)} jobs)"):
        for j in jobs:
            core.info(f"{j.filename}{' (released)' if j.release else ''}")

    write(jobs, settings.output)
    core.set_output("matrix", dump(jobs))
