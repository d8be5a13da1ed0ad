from datetime import date
from pathlib import Path

from actions import core

from .config import ReleaseSettings
from .errors import ConfigError
from .github import ApiFailure, FailureKind, Release, ReleaseStore
from .utils import action, action_group

# Checked in order, first match wins
CATEGORIES = {
    "windows": "Windows",
    "macos": "macOS",
    "linux-gnu": "Linux GNU",
    "linux-musl": "Linux musl",
}


def categorize(filenames: list[str]) -> dict[str, list[str]]:
    sections: dict[str, list[str]] = {k: [] for k in CATEGORIES}

    for filename in filenames:
        if platform := next((p for p in CATEGORIES if p in filename), None):
            sections[platform].append(filename)

    return sections


def release_notes(tag: str, sections: dict[str, list[str]], today: date | None = None) -> str:
    body = (
        "## Tebako runtime packages\n"
        "\n"
        f"Release version: {tag}\n"
        f"Build date: {(today or date.today()).strftime('%Y-%m-%d')}\n"
        "\n"
    )

    for platform, files in sections.items():
        if not files:
            continue
        body += f"\n### {CATEGORIES[platform]} executables\n"
        body += "".join(f"- {f}\n" for f in files)

    return body


def list_packages(packages_dir: Path) -> list[Path]:
    if not packages_dir.is_dir():
        raise ConfigError(f"No runtime packages directory found: {packages_dir}")

    packages = sorted(p for p in packages_dir.iterdir() if p.is_file())
    if not packages:
        raise ConfigError(f"No packages found in {packages_dir}")

    with action_group(f"Found {len(packages)} packages"):
        for p in packages:
            core.info(p.name)

    return packages


class ReleaseReconciler:
    def __init__(self, settings: ReleaseSettings, store: ReleaseStore):
        self.settings = settings
        self.store = store

    def get_or_create_release(self) -> Release:
        tag = self.settings.tag
        core.info(f"Looking for release with tag: {tag}")

        match self.store.get_release(tag):
            case ApiFailure(kind=FailureKind.NOT_FOUND):
                core.info(f"Creating new release for tag: {tag}")
                return self.store.create_release(
                    tag, self.settings.title, release_notes(tag, categorize([]))
                )
            case ApiFailure() as failure:
                raise failure.error(f"Unable to look up release {tag}")
            case release:
                pass

        assets = self.store.list_assets(release.id)
        if isinstance(assets, ApiFailure):
            raise assets.error(f"Unable to list assets of release {tag}")

        return release.model_copy(update={"assets": assets})

    def upload(self, release: Release, package: Path) -> str:
        filename = package.name
        core.info(f"Processing {filename}...")

        if existing := release.find(filename):
            if not self.settings.force_rebuild:
                core.info(f"Skipping upload of existing asset {filename} (FORCE_REBUILD not set)")
                return filename

            core.info(f"Deleting existing asset {filename}")
            self.store.delete_asset(existing)

        core.info(f"Uploading {filename}")
        self.store.upload_asset(release, package, filename)
        return filename

    def reconcile(self) -> Release:
        release = self.get_or_create_release()
        core.info(f"Working with release ID: {release.id}")

        packages = list_packages(self.settings.packages_dir)
        uploaded = [self.upload(release, p) for p in packages]

        self.store.update_body(release, release_notes(release.tag_name, categorize(uploaded)))
        core.info("Successfully updated release notes")

        return release


def reconcile(tag: str, packages_dir: Path, force_rebuild: bool = False, **kw) -> Release:
    settings = ReleaseSettings.from_env(
        version=tag, packages_dir=packages_dir, force_rebuild=force_rebuild, **kw
    )
    return ReleaseReconciler(settings, ReleaseStore(settings.repo, settings.token)).reconcile()


@action
def upload_release():
    settings = ReleaseSettings.from_env()
    ReleaseReconciler(settings, ReleaseStore(settings.repo, settings.token)).reconcile()
