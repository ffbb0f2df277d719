#!/usr/bin/env python3
"""Download the inklecate compiler release for this platform into ./bin."""

from __future__ import annotations

import argparse
import logging
import stat
import sys
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_BIN_DIR = REPO_ROOT / "bin"
LATEST_RELEASE_URL = "https://api.github.com/repos/inkle/ink/releases/latest"
USER_AGENT = "Calligrapher-Setup"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from calligrapher.platform import machine, system

logger = logging.getLogger("calligrapher.tools.download")

ASSET_PATTERNS: Dict[str, List[str]] = {
    "linux": ["inklecate_linux.zip", "inklecate-linux-x86_64.zip"],
    "darwin": ["inklecate_mac.zip", "inklecate-macos.zip"],
    "windows": ["inklecate_windows.zip", "inklecate-win-x86_64.zip"],
}


class DownloadError(RuntimeError):
    """Raised when the release cannot be located, fetched or unpacked."""


def asset_patterns(system_name: str, machine_name: str) -> List[str]:
    if system_name == "linux" and machine_name not in {"x86_64", "amd64"}:
        return []
    return ASSET_PATTERNS.get(system_name, [])


def select_asset(release: Dict[str, Any], patterns: Sequence[str]) -> str:
    assets = release.get("assets") or []
    for asset in assets:
        if asset.get("name") in patterns:
            return asset["browser_download_url"]
    available = ", ".join(str(asset.get("name")) for asset in assets) or "none"
    raise DownloadError(
        f"No release asset matches {', '.join(patterns) or 'this platform'} (available: {available})"
    )


def fetch_release(session: requests.Session) -> Dict[str, Any]:
    resp = session.get(LATEST_RELEASE_URL, timeout=30)
    if resp.status_code == 403:
        raise DownloadError(
            "GitHub API rate limit exceeded. Please wait a few minutes or download manually."
        )
    if resp.status_code != 200:
        raise DownloadError(f"GitHub API error {resp.status_code}: {resp.text[:200]}")
    return resp.json()


def download_file(session: requests.Session, url: str, dest: Path) -> None:
    logger.info("Downloading %s", url)
    with session.get(url, stream=True, timeout=60) as resp:
        if resp.status_code != 200:
            raise DownloadError(f"Download failed: {resp.status_code}")
        with open(dest, "wb") as handle:
            for chunk in resp.iter_content(chunk_size=65536):
                handle.write(chunk)


def extract_compiler(archive: Path, dest: Path) -> Path:
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest)
    except zipfile.BadZipFile as exc:
        raise DownloadError(f"Failed to extract: {exc}") from exc

    for name in ("inklecate", "inklecate.exe"):
        if (dest / name).is_file():
            compiler = dest / name
            break
    else:
        candidates = sorted(
            path
            for path in dest.rglob("inklecate*")
            if path.is_file() and path.suffix.lower() not in {".zip", ".dll", ".pdb"}
        )
        if not candidates:
            raise DownloadError("inklecate not found after extraction")
        target_name = "inklecate.exe" if candidates[0].suffix.lower() == ".exe" else "inklecate"
        compiler = candidates[0].replace(dest / target_name)

    if compiler.suffix.lower() != ".exe":
        mode = compiler.stat().st_mode
        compiler.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return compiler


def setup_inklecate(
    bin_dir: Path,
    *,
    system_name: Optional[str] = None,
    machine_name: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> Path:
    system_name = system_name or system()
    machine_name = machine_name or machine()
    patterns = asset_patterns(system_name, machine_name)
    if not patterns:
        raise DownloadError(f"No inklecate release for {system_name}-{machine_name}")

    bin_dir.mkdir(parents=True, exist_ok=True)
    session = session or requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})

    url = select_asset(fetch_release(session), patterns)
    archive = bin_dir / "inklecate-temp.zip"
    try:
        download_file(session, url, archive)
        return extract_compiler(archive, bin_dir)
    finally:
        if archive.exists():
            archive.unlink()


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download the inklecate compiler.")
    parser.add_argument(
        "--bin-dir",
        default=str(DEFAULT_BIN_DIR),
        help="Directory to install inklecate into (default: ./bin).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log download progress.")
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    try:
        compiler = setup_inklecate(Path(args.bin_dir))
    except (DownloadError, requests.RequestException, OSError) as exc:
        print(f"Setup failed: {exc}")
        print("Alternative: download manually from https://github.com/inkle/ink/releases")
        print(f"Then extract to: {args.bin_dir}")
        sys.exit(1)
    print(f"inklecate installed: {compiler}")


if __name__ == "__main__":
    main(sys.argv)
