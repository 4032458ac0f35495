"""Shared fixtures for homebins tests."""

import hashlib
import io
import shutil
import tarfile
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from homebins.config.parser import parse_manifest
from homebins.config.schemas import Manifest
from homebins.core.dirs import InstallDirs

HELLO_URL = "https://example.com/releases/hello-linux-x86_64"
TOOL_URL = "https://example.com/releases/tool-2.0.0.tar.gz"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="homebins_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def install_dirs(temp_dir: Path) -> InstallDirs:
    """Install directories below a temporary home."""
    home = temp_dir / "home"
    return InstallDirs(
        download_root=temp_dir / "cache" / "downloads",
        work_root=temp_dir / "work",
        repos_dir=temp_dir / "cache" / "manifest_repos",
        bin_dir=home / ".local" / "bin",
        man_dir=home / ".local" / "share" / "man",
        systemd_user_unit_dir=home / ".config" / "systemd" / "user",
        completion_dirs={"fish": home / ".config" / "fish" / "completions"},
    )


@pytest.fixture
def hello_script() -> bytes:
    """A single-file "binary" which reports version 1.2.3."""
    return b"#!/bin/sh\necho hello 1.2.3\n"


@pytest.fixture
def tool_archive() -> bytes:
    """A tar.gz release with a binary, a man page and a fish completion."""
    members = {
        "tool-2.0.0/bin/tool": (b"#!/bin/sh\necho tool 2.0.0\n", 0o755),
        "tool-2.0.0/doc/tool.1": (b".TH TOOL 1\n", 0o644),
        "tool-2.0.0/complete/tool.fish": (b"complete -c tool -l help\n", 0o644),
    }
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, (content, mode) in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = mode
            info.mtime = 1_700_000_000
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture
def payloads(hello_script: bytes, tool_archive: bytes) -> dict[str, bytes]:
    """Content served for each download URL."""
    return {HELLO_URL: hello_script, TOOL_URL: tool_archive}


@pytest.fixture
def fake_curl(payloads: dict[str, bytes]) -> Callable[..., None]:
    """A curl replacement writing the payload of a URL to the target."""

    def curl(url: str, target: Path, retries: int = 3, retry_delay: int = 3) -> None:
        target.write_bytes(payloads[url])

    return curl


@pytest.fixture
def hello_manifest_data(hello_script: bytes) -> dict[str, Any]:
    """Manifest data installing a single downloaded file."""
    return {
        "info": {
            "name": "hello",
            "version": "1.2.3",
            "url": "https://example.com/hello",
            "license": "MIT",
        },
        "discover": {
            "binary": "hello",
            "version_check": {"args": ["--version"], "pattern": "hello ([0-9.]+)"},
        },
        "install": [
            {
                "download": HELLO_URL,
                "checksums": {"sha256": hashlib.sha256(hello_script).hexdigest()},
                "name": "hello",
                "type": "bin",
            }
        ],
    }


@pytest.fixture
def hello_manifest(hello_manifest_data: dict[str, Any]) -> Manifest:
    """Parsed single-file manifest."""
    return parse_manifest(hello_manifest_data)


@pytest.fixture
def tool_manifest_data(tool_archive: bytes) -> dict[str, Any]:
    """Manifest data installing several files from an archive."""
    return {
        "info": {
            "name": "tool",
            "version": "2.0.0",
            "url": "https://example.com/tool",
            "license": "Apache-2.0 OR MIT",
        },
        "discover": {
            "binary": "tool",
            "version_check": {"args": ["--version"], "pattern": "tool ([0-9.]+)"},
        },
        "install": [
            {
                "download": TOOL_URL,
                "checksums": {"sha512": hashlib.sha512(tool_archive).hexdigest()},
                "files": [
                    {"source": "tool-2.0.0/bin/tool", "type": "bin", "links": ["tl"]},
                    {"source": "tool-2.0.0/doc/tool.1", "type": "manpage", "section": 1},
                    {
                        "source": "tool-2.0.0/complete/tool.fish",
                        "type": "completion",
                        "shell": "fish",
                    },
                ],
            }
        ],
        "remove": {"additional_files": [{"name": "old-tool", "type": "bin"}]},
    }


@pytest.fixture
def tool_manifest(tool_manifest_data: dict[str, Any]) -> Manifest:
    """Parsed archive manifest."""
    return parse_manifest(tool_manifest_data)


@pytest.fixture
def hello_toml(hello_script: bytes) -> str:
    """TOML source of the single-file manifest."""
    return f"""
[info]
name = "hello"
version = "1.2.3"
url = "https://example.com/hello"
license = "MIT"

[discover]
binary = "hello"
version_check = {{ args = ["--version"], pattern = "hello ([0-9.]+)" }}

[[install]]
download = "{HELLO_URL}"
checksums = {{ sha256 = "{hashlib.sha256(hello_script).hexdigest()}" }}
name = "hello"
type = "bin"
"""


@pytest.fixture
def tool_toml(tool_archive: bytes) -> str:
    """TOML source of the archive manifest."""
    return f"""
[info]
name = "tool"
version = "2.0.0"
url = "https://example.com/tool"
license = "Apache-2.0 OR MIT"

[discover]
binary = "tool"
version_check = {{ args = ["--version"], pattern = "tool ([0-9.]+)" }}

[[install]]
download = "{TOOL_URL}"
checksums = {{ sha512 = "{hashlib.sha512(tool_archive).hexdigest()}" }}
files = [
    {{ source = "tool-2.0.0/bin/tool", type = "bin", links = ["tl"] }},
    {{ source = "tool-2.0.0/doc/tool.1", type = "manpage", section = 1 }},
    {{ source = "tool-2.0.0/complete/tool.fish", type = "completion", shell = "fish" }},
]

[remove]
additional_files = [{{ name = "old-tool", type = "bin" }}]
"""


@pytest.fixture
def manifest_dir(temp_dir: Path, hello_toml: str, tool_toml: str) -> Path:
    """A manifest directory holding the hello and tool manifests."""
    directory = temp_dir / "manifests"
    directory.mkdir()
    (directory / "hello.toml").write_text(hello_toml)
    (directory / "tool.toml").write_text(tool_toml)
    return directory
