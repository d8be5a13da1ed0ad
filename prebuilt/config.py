import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Annotated, ClassVar, Self

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import ConfigError
from .utils import truthy

RUNTIME_REPO = "tamatebako/tebako-runtime-ruby"
SOURCE_REPO = "tamatebako/tebako"

# Descriptor families, in the order they are fetched
FAMILIES = ["macos", "ubuntu", "windows-msys", "alpine"]


class Architecture(str, Enum):
    X86_64 = "x86_64"
    ARM64 = "arm64"
    X64 = "x64"


class Platform(str, Enum):
    MACOS = "macos"
    UBUNTU = "ubuntu"
    WINDOWS = "windows"
    ALPINE = "alpine"

    @staticmethod
    def from_family(family: str) -> "Platform":
        try:
            return Platform(family.removesuffix("-msys"))
        except ValueError:
            raise ConfigError(f"Unknown platform family: {family}") from None

    @property
    def archs(self) -> list[Architecture]:
        if self == Platform.WINDOWS:
            return [Architecture.X64]
        return [Architecture.X86_64, Architecture.ARM64]


class EnvironmentRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    os: str
    alpine_ver: Annotated[
        str | None,
        Field(default=None, validation_alias=AliasChoices("ALPINE_VER", "alpine_ver")),
    ]
    platform: Platform | None = None

    @field_validator("alpine_ver", mode="before")
    @classmethod
    def stringify_alpine_ver(cls, v):
        # Descriptors sometimes carry ALPINE_VER as a bare number
        return str(v) if isinstance(v, (int, float)) else v

    def tagged(self, family: str) -> "EnvironmentRecord":
        return self.model_copy(update={"platform": Platform.from_family(family)})


class Matrix(BaseModel):
    ruby: list[str] = []
    env: list[EnvironmentRecord] = []


class PlatformDescriptor(BaseModel):
    full: Matrix


class ReleaseInfo(BaseModel):
    url: str


class BuildJob(BaseModel):
    ruby_ver: str
    os: str
    platform: Platform
    platform_name: str
    arch: Architecture
    filename: str
    release: ReleaseInfo | None = None


class _Settings(BaseModel):
    env_vars: ClassVar[dict[str, str]] = {
        "GITHUB_TOKEN": "token",
        "TEBAKO_VERSION": "version",
        "FORCE_REBUILD": "force_rebuild",
        "RUNTIME_REPO": "repo",
    }
    required: ClassVar[tuple[str, ...]] = ("TEBAKO_VERSION",)

    token: str | None = None
    version: str
    force_rebuild: bool = False
    repo: str = RUNTIME_REPO

    @field_validator("force_rebuild", mode="before")
    @classmethod
    def parse_force_rebuild(cls, v):
        return truthy(v) if isinstance(v, str) else v

    @field_validator("version")
    @classmethod
    def strip_version(cls, v: str) -> str:
        return v.strip().lstrip("v")

    @property
    def tag(self) -> str:
        return f"v{self.version}"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides) -> Self:
        env = os.environ if env is None else env

        for var in cls.required:
            if not env.get(var) and cls.env_vars[var] not in overrides:
                raise ConfigError(f"{var} environment variable is required")

        values = {
            field: env[var] for var, field in cls.env_vars.items() if env.get(var)
        }

        try:
            return cls.model_validate(values | overrides)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


class MatrixSettings(_Settings):
    env_vars: ClassVar[dict[str, str]] = _Settings.env_vars | {
        "SOURCE_REPO": "source_repo",
        "WINDOWS_EXTENSION": "windows_extension",
        "SKIP_EXISTING_LOOKUP_ON_FORCE_REBUILD": "skip_existing_lookup_on_force_rebuild",
        "MATRIX_OUTPUT": "output",
    }

    source_repo: str = SOURCE_REPO
    windows_extension: str = ""
    skip_existing_lookup_on_force_rebuild: bool = True
    output: Path = Path("build-matrix.json")

    @field_validator("skip_existing_lookup_on_force_rebuild", mode="before")
    @classmethod
    def parse_skip_lookup(cls, v):
        return truthy(v) if isinstance(v, str) else v

    def descriptor_url(self, family: str) -> str:
        return f"https://raw.githubusercontent.com/{self.source_repo}/{self.tag}/.github/matrices/{family}.json"


class ReleaseSettings(_Settings):
    env_vars: ClassVar[dict[str, str]] = _Settings.env_vars | {"PACKAGES_DIR": "packages_dir"}
    required: ClassVar[tuple[str, ...]] = ("GITHUB_TOKEN", "TEBAKO_VERSION")

    token: str
    packages_dir: Path = Path("runtime-packages")

    @property
    def title(self) -> str:
        return f"Tebako runtime packages {self.tag}"
