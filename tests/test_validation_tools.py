import io
import os
import subprocess
import sys
import zipfile
from pathlib import Path

import pytest

from tools import download_inklecate


REPO_ROOT = Path(__file__).resolve().parents[1]


def write_story(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "story.txt"
    path.write_text(text, encoding="utf-8")
    return path


def run_validator(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, str(REPO_ROOT / "tools" / "validate_story.py"), *args],
        capture_output=True,
        text=True,
        check=False,
    )


def test_validate_story_passes_clean_story(tmp_path: Path) -> None:
    path = write_story(tmp_path, "=== start ===\nHi.\n* [On] -> end\n=== end ===\nBye.\n")
    result = run_validator(str(path))
    assert result.returncode == 0
    assert "Sections: 2" in result.stdout
    assert "Validation passed" in result.stdout


def test_validate_story_flags_missing_targets(tmp_path: Path) -> None:
    path = write_story(tmp_path, "=== start ===\n* [Down] -> cellar\n")
    result = run_validator(str(path))
    assert result.returncode == 1
    assert "start: choice points at missing section 'cellar'" in result.stdout


def test_validate_story_flags_missing_start(tmp_path: Path) -> None:
    path = write_story(tmp_path, "=== intro ===\nHi.\n")
    result = run_validator(str(path))
    assert result.returncode == 1
    assert "missing start section 'start'" in result.stdout

    assert run_validator(str(path), "--start", "intro").returncode == 0


def test_validate_story_warns_about_unreachable_sections(tmp_path: Path) -> None:
    path = write_story(tmp_path, "=== start ===\nHi.\n=== attic ===\nDust.\n")
    result = run_validator(str(path))
    assert result.returncode == 0
    assert "Unreachable sections:" in result.stdout
    assert " - attic" in result.stdout


def test_validate_story_missing_file(tmp_path: Path) -> None:
    result = run_validator(str(tmp_path / "nope.txt"))
    assert result.returncode == 1
    assert "Failed to load" in result.stdout


@pytest.mark.parametrize(
    ("system_name", "machine_name", "expected"),
    [
        ("linux", "x86_64", "inklecate_linux.zip"),
        ("linux", "aarch64", None),
        ("darwin", "arm64", "inklecate_mac.zip"),
        ("windows", "amd64", "inklecate_windows.zip"),
        ("sunos", "sparc", None),
    ],
)
def test_asset_patterns_per_platform(system_name: str, machine_name: str, expected) -> None:
    patterns = download_inklecate.asset_patterns(system_name, machine_name)
    if expected is None:
        assert patterns == []
    else:
        assert patterns[0] == expected


def test_select_asset_reports_available_names() -> None:
    release = {
        "assets": [
            {"name": "inklecate_mac.zip", "browser_download_url": "https://example.test/mac.zip"},
            {"name": "inklecate_linux.zip", "browser_download_url": "https://example.test/linux.zip"},
        ]
    }
    assert download_inklecate.select_asset(release, ["inklecate_linux.zip"]) == "https://example.test/linux.zip"
    with pytest.raises(download_inklecate.DownloadError, match="inklecate_mac.zip"):
        download_inklecate.select_asset(release, ["inklecate_windows.zip"])


def build_archive(members: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_extract_compiler_finds_nested_binary(tmp_path: Path) -> None:
    archive = tmp_path / "release.zip"
    archive.write_bytes(build_archive({"inklecate_linux/inklecate_v1": "#!/bin/sh\n", "README.txt": "hi"}))
    dest = tmp_path / "bin"
    dest.mkdir()

    compiler = download_inklecate.extract_compiler(archive, dest)

    assert compiler == dest / "inklecate"
    assert os.access(compiler, os.X_OK)


def test_extract_compiler_rejects_bad_archives(tmp_path: Path) -> None:
    archive = tmp_path / "release.zip"
    archive.write_bytes(b"not a zip")
    with pytest.raises(download_inklecate.DownloadError, match="extract"):
        download_inklecate.extract_compiler(archive, tmp_path)

    archive.write_bytes(build_archive({"README.txt": "no compiler here"}))
    with pytest.raises(download_inklecate.DownloadError, match="not found"):
        download_inklecate.extract_compiler(archive, tmp_path / "empty")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, body: bytes = b"") -> None:
        self.status_code = status_code
        self.payload = payload
        self.body = body
        self.text = str(payload)

    def json(self):
        return self.payload

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


class FakeSession:
    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.headers: dict = {}
        self.requested = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.requested.append(url)
        return self.responses[url]


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_setup_inklecate_downloads_and_extracts(tmp_path: Path) -> None:
    asset_url = "https://example.test/inklecate_linux.zip"
    release = {"assets": [{"name": "inklecate_linux.zip", "browser_download_url": asset_url}]}
    session = FakeSession(
        {
            download_inklecate.LATEST_RELEASE_URL: FakeResponse(payload=release),
            asset_url: FakeResponse(body=build_archive({"inklecate": "#!/bin/sh\n"})),
        }
    )

    compiler = download_inklecate.setup_inklecate(
        tmp_path / "bin", system_name="linux", machine_name="x86_64", session=session
    )

    assert compiler == tmp_path / "bin" / "inklecate"
    assert session.headers["User-Agent"] == download_inklecate.USER_AGENT
    assert not (tmp_path / "bin" / "inklecate-temp.zip").exists()


def test_fetch_release_reports_rate_limit() -> None:
    session = FakeSession({download_inklecate.LATEST_RELEASE_URL: FakeResponse(status_code=403)})
    with pytest.raises(download_inklecate.DownloadError, match="rate limit"):
        download_inklecate.fetch_release(session)


def test_setup_inklecate_rejects_unsupported_platform(tmp_path: Path) -> None:
    with pytest.raises(download_inklecate.DownloadError, match="linux-armv7l"):
        download_inklecate.setup_inklecate(tmp_path, system_name="linux", machine_name="armv7l")
