"""Pydantic schemas for homebins.

This module defines the data models for:
- manifests (<name>.toml in a manifest repository)
- config.yaml (user configuration)
"""

import os
import re
from pathlib import Path
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    Discriminator,
    Field,
    Tag,
    ValidationInfo,
    field_validator,
    model_validator,
)

from homebins.utils.version import SemVer

# =============================================================================
# Common Types
# =============================================================================

Shell = Literal["fish"]
ChecksumAlgorithm = Literal["b2", "sha512", "sha256", "sha1"]

# Strongest first; validation uses the first one present.
CHECKSUM_PRIORITY: tuple[ChecksumAlgorithm, ...] = ("b2", "sha512", "sha256", "sha1")

DIGEST_SIZES: dict[ChecksumAlgorithm, int] = {
    "b2": 64,
    "sha512": 64,
    "sha256": 32,
    "sha1": 20,
}

DOWNLOAD_SCHEMES = ("http", "https", "ftp", "file")

_SPDX_TOKEN = re.compile(r"\s*(\(|\)|[A-Za-z0-9.+:-]+)")


def _tokenize_spdx(expression: str) -> list[str]:
    tokens = []
    position = 0
    expression = expression.rstrip()
    while position < len(expression):
        match = _SPDX_TOKEN.match(expression, position)
        if not match:
            raise ValueError(f"Invalid character in license expression: {expression!r}")
        tokens.append(match.group(1))
        position = match.end()
    return tokens


def validate_spdx_expression(expression: str) -> str:
    """Check the syntax of an SPDX license expression.

    License identifiers are not checked against the SPDX license list, only
    the structure: identifiers joined by AND/OR, optional WITH exceptions and
    balanced parentheses.

    Raises:
        ValueError: If the expression is malformed
    """
    tokens = _tokenize_spdx(expression)
    operators = {"AND", "OR", "WITH"}

    def is_operator(token: str) -> bool:
        return token.upper() in operators

    def parse_compound(index: int) -> int:
        index = parse_simple(index)
        while index < len(tokens) and tokens[index].upper() in ("AND", "OR"):
            index = parse_simple(index + 1)
        return index

    def parse_simple(index: int) -> int:
        if index >= len(tokens):
            raise ValueError(f"Incomplete license expression: {expression!r}")
        token = tokens[index]
        if token == "(":
            index = parse_compound(index + 1)
            if index >= len(tokens) or tokens[index] != ")":
                raise ValueError(f"Unbalanced parentheses in license expression: {expression!r}")
            return index + 1
        if token == ")" or is_operator(token):
            raise ValueError(f"Unexpected {token!r} in license expression: {expression!r}")
        index += 1
        if index < len(tokens) and tokens[index].upper() == "WITH":
            exception = tokens[index + 1] if index + 1 < len(tokens) else None
            if exception is None or exception in ("(", ")") or is_operator(exception):
                raise ValueError(f"Missing exception after WITH in: {expression!r}")
            index += 2
        return index

    if not tokens:
        raise ValueError("License expression cannot be empty")
    end = parse_compound(0)
    if end != len(tokens):
        raise ValueError(f"Unexpected {tokens[end]!r} in license expression: {expression!r}")
    return expression


def validate_file_name(name: str) -> str:
    """Check that ``name`` is a single path component.

    Installed file names and link aliases are joined to a destination
    directory, so they must not be able to point anywhere else.

    Raises:
        ValueError: If the name is empty, "." or "..", or contains a separator
    """
    if not name or name in (".", "..") or "/" in name or os.sep in name or "\0" in name:
        raise ValueError(f"Invalid file name {name!r}: must be a plain file name, not a path")
    return name


def _nest_target(data: Any, own_fields: set[str]) -> Any:
    """Move flattened target fields (``type`` and friends) into ``target``."""
    if isinstance(data, dict) and "target" not in data:
        data = dict(data)
        data["target"] = {key: data.pop(key) for key in list(data) if key not in own_fields}
    return data


# =============================================================================
# Targets
# =============================================================================


class BinaryTarget(BaseModel):
    """An executable installed to the bin directory, with optional hard link aliases."""

    type: Literal["binary", "bin"] = "binary"
    links: list[str] = Field(default_factory=list)

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return "binary"

    @field_validator("links")
    @classmethod
    def validate_links(cls, v: list[str]) -> list[str]:
        for link in v:
            validate_file_name(link)
        return v


class ManpageTarget(BaseModel):
    """A man page installed to the section directory below the man dir."""

    type: Literal["manpage"] = "manpage"
    section: int = Field(ge=1, le=9)


class SystemdUserUnitTarget(BaseModel):
    """A systemd unit installed to the user unit directory."""

    type: Literal["systemd-user-unit"] = "systemd-user-unit"


class CompletionTarget(BaseModel):
    """A completion file for a shell."""

    type: Literal["completion"] = "completion"
    shell: Shell


Target = Annotated[
    BinaryTarget | ManpageTarget | SystemdUserUnitTarget | CompletionTarget,
    Field(discriminator="type"),
]


# =============================================================================
# Manifest
# =============================================================================


class Info(BaseModel):
    """Manifest metadata."""

    name: str
    version: str
    url: str
    license: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate manifest name format."""
        if not v:
            raise ValueError("Manifest name cannot be empty")
        if not re.match(r"^[a-z0-9][a-z0-9_-]*$", v):
            raise ValueError(
                "Manifest name must start with alphanumeric and contain only "
                "lowercase letters, numbers, hyphens, and underscores"
            )
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        SemVer.parse(v)
        return v

    @field_validator("license")
    @classmethod
    def validate_license(cls, v: str) -> str:
        return validate_spdx_expression(v)


class VersionCheck(BaseModel):
    """How to ask an installed binary for its version."""

    args: list[str] = Field(default_factory=list)
    pattern: str

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            compiled = re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid version pattern {v!r}: {e}") from e
        if compiled.groups < 1:
            raise ValueError(f"Version pattern {v!r} needs a capture group for the version")
        return v

    def regex(self) -> re.Pattern[str]:
        return re.compile(self.pattern)


class Discover(BaseModel):
    """How to detect an installed version of a manifest."""

    binary: str
    version_check: VersionCheck

    @field_validator("binary")
    @classmethod
    def validate_binary(cls, v: str) -> str:
        return validate_file_name(v)


class Checksums(BaseModel):
    """Hex digests of a downloaded file.

    Only the strongest available digest is ever checked.
    """

    model_config = {"frozen": True}

    b2: str | None = None
    sha512: str | None = None
    sha256: str | None = None
    sha1: str | None = None

    @field_validator("b2", "sha512", "sha256", "sha1")
    @classmethod
    def validate_hex(cls, v: str | None, info: ValidationInfo) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        try:
            digest = bytes.fromhex(v)
        except ValueError as e:
            raise ValueError(f"{info.field_name} checksum is not a hex string") from e
        expected = DIGEST_SIZES[info.field_name]
        if len(digest) != expected:
            raise ValueError(
                f"{info.field_name} checksum must have {expected} bytes, got {len(digest)}"
            )
        return v

    @model_validator(mode="after")
    def require_checksum(self) -> "Checksums":
        if self.preferred() is None:
            raise ValueError("At least one checksum (b2, sha512, sha256, sha1) is required")
        return self

    def preferred(self) -> tuple[ChecksumAlgorithm, bytes] | None:
        """Get the strongest available algorithm and its expected digest."""
        for algorithm in CHECKSUM_PRIORITY:
            value = getattr(self, algorithm)
            if value:
                return algorithm, bytes.fromhex(value)
        return None


class InstallFile(BaseModel):
    """A file to copy out of an extracted archive."""

    source: str
    name: str | None = None
    target: Target

    @model_validator(mode="before")
    @classmethod
    def nest_target(cls, data: Any) -> Any:
        return _nest_target(data, {"source", "name"})

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return v if v is None else validate_file_name(v)


class SingleFile(BaseModel):
    """The download itself is the file to install."""

    name: str | None = None
    target: Target

    @model_validator(mode="before")
    @classmethod
    def nest_target(cls, data: Any) -> Any:
        return _nest_target(data, {"name"})

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return v if v is None else validate_file_name(v)


class FilesFromArchive(BaseModel):
    """The download is an archive; install files from its extracted contents."""

    files: list[InstallFile] = Field(min_length=1)


def _install_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "archive" if "files" in value else "single"
    return "archive" if isinstance(value, FilesFromArchive) else "single"


Install = Annotated[
    Annotated[SingleFile, Tag("single")] | Annotated[FilesFromArchive, Tag("archive")],
    Discriminator(_install_kind),
]


class InstallDownload(BaseModel):
    """One download and the files it provides."""

    download: str
    checksums: Checksums
    install: Install

    @model_validator(mode="before")
    @classmethod
    def nest_install(cls, data: Any) -> Any:
        """Collect the untagged install fields next to download and checksums."""
        if isinstance(data, dict) and "install" not in data:
            data = dict(data)
            data["install"] = {
                key: data.pop(key) for key in list(data) if key not in ("download", "checksums")
            }
        return data

    @field_validator("download")
    @classmethod
    def validate_download(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in DOWNLOAD_SCHEMES:
            raise ValueError(f"Invalid download URL {v!r}: scheme must be one of {DOWNLOAD_SCHEMES}")
        if parsed.scheme != "file" and not parsed.netloc:
            raise ValueError(f"Invalid download URL {v!r}: missing host")
        return v


class RemoveFile(BaseModel):
    """A file from an older manifest version which must be deleted."""

    name: str
    target: Target

    @model_validator(mode="before")
    @classmethod
    def nest_target(cls, data: Any) -> Any:
        return _nest_target(data, {"name"})

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_file_name(v)


class Remove(BaseModel):
    """Removal extras of a manifest."""

    additional_files: list[RemoveFile] = Field(default_factory=list)


class Manifest(BaseModel):
    """A manifest describing one installable package."""

    info: Info
    discover: Discover
    install: list[InstallDownload] = Field(min_length=1)
    remove: Remove = Field(default_factory=Remove)

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def semver(self) -> SemVer:
        """The manifest version, for comparison with installed versions."""
        return SemVer.parse(self.info.version)


# =============================================================================
# User Configuration (config.yaml)
# =============================================================================


class ManifestRepoConfig(BaseModel):
    """The Git repository to sync manifests from."""

    name: str = "lunaryorn"
    url: str = "https://github.com/lunaryorn/homebin-manifests"
    branch: str = "master"


class DirectoriesConfig(BaseModel):
    """Overrides for the directories homebins reads and writes.

    Unset entries fall back to XDG defaults.
    """

    download_root: Path | None = None
    work_root: Path | None = None
    repos_dir: Path | None = None
    bin_dir: Path | None = None
    man_dir: Path | None = None
    fish_completion_dir: Path | None = None
    systemd_user_unit_dir: Path | None = None


class DownloadConfig(BaseModel):
    """Options passed through to curl."""

    retries: int = Field(default=3, ge=0)
    retry_delay: int = Field(default=3, ge=0)


class HomebinsConfig(BaseModel):
    """User configuration (config.yaml) schema."""

    manifest_repo: ManifestRepoConfig = Field(default_factory=ManifestRepoConfig)
    directories: DirectoriesConfig = Field(default_factory=DirectoriesConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
