"""
artifacts.py

Responsibility: Produce the release artifact set for one version.

Naming contract (bit-exact):
- `<binary>-<version>-linux-x86_64-static`          raw binary
- `<binary>-<version>-linux-x86_64-static.tar.gz`   gzip tarball with the binary as its only member
- `<binary>-<version>-linux-x86_64-static.zip`      zip with the binary as its only entry
- `checksums-static.txt`                            `sha256sum` output over the three files above

This module does NOT know about cargo, git or GitHub.
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

from releaser.errors import ReleaserError
from releaser.shell import Runner

logger = logging.getLogger(__name__)

PLATFORM_SUFFIX = "linux-x86_64-static"
CHECKSUM_FILENAME = "checksums-static.txt"

_CHUNK = 1024 * 1024
_CHECKSUM_LINE_RE = re.compile(r"^([0-9a-fA-F]{64}) ([ *])(.+)$")


class ArtifactError(ReleaserError):
    pass


def artifact_basename(binary: str, version: str) -> str:
    return f"{binary}-{version}-{PLATFORM_SUFFIX}"


@dataclass(frozen=True)
class ArtifactSet:
    binary: Path
    tarball: Path
    zip: Path
    checksums: Path

    @classmethod
    def for_version(cls, releases_dir: Path, binary: str, version: str) -> ArtifactSet:
        base = releases_dir / artifact_basename(binary, version)
        return cls(
            binary=base,
            tarball=base.with_name(base.name + ".tar.gz"),
            zip=base.with_name(base.name + ".zip"),
            checksums=releases_dir / CHECKSUM_FILENAME,
        )

    def upload_order(self) -> list[Path]:
        return [self.binary, self.tarball, self.zip, self.checksums]

    def missing(self) -> list[Path]:
        return [p for p in self.upload_order() if not p.is_file()]


@dataclass(frozen=True)
class ChecksumEntry:
    digest: str
    filename: str

    def to_line(self) -> str:
        return f"{self.digest}  {self.filename}\n"


@dataclass(frozen=True)
class StaticCheck:
    is_static: bool
    detail: str
    verified: bool = True


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def stage_binary(source: str | Path, releases_dir: str | Path, binary: str, version: str) -> Path:
    """Copy the built binary into the releases directory under its versioned name."""
    src = Path(source)
    if not src.is_file():
        raise ArtifactError(f"Built binary not found: {src}")
    out_dir = Path(releases_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    dst = out_dir / artifact_basename(binary, version)
    shutil.copy2(src, dst)
    logger.info("Copied %s -> %s", src, dst)
    return dst


def create_tarball(binary_path: Path) -> Path:
    out = binary_path.with_name(binary_path.name + ".tar.gz")
    with tarfile.open(out, "w:gz") as tar:
        tar.add(binary_path, arcname=binary_path.name)
    return out


def create_zip(binary_path: Path) -> Path:
    out = binary_path.with_name(binary_path.name + ".zip")
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        # ZipFile.write keeps the file mode in external_attr, so the entry stays executable.
        zf.write(binary_path, arcname=binary_path.name)
    return out


def glob_escape(name: str) -> str:
    return re.sub(r"([*?\[])", r"[\1]", name)


def compute_checksums(releases_dir: str | Path, basename: str) -> list[ChecksumEntry]:
    """
    Digest every file in `releases_dir` matching `<basename>*`, in sorted filename
    order (what `sha256sum <basename>*` prints).
    """
    out_dir = Path(releases_dir)
    files = sorted(p for p in out_dir.glob(f"{glob_escape(basename)}*") if p.is_file())
    if not files:
        raise ArtifactError(f"No artifacts matching {basename}* in {out_dir}")
    return [ChecksumEntry(digest=sha256_file(p), filename=p.name) for p in files]


def write_checksums(releases_dir: str | Path, basename: str) -> list[ChecksumEntry]:
    """Write `checksums-static.txt` for `compute_checksums(releases_dir, basename)`."""
    out_dir = Path(releases_dir)
    entries = compute_checksums(out_dir, basename)
    (out_dir / CHECKSUM_FILENAME).write_text("".join(e.to_line() for e in entries), encoding="utf-8")
    return entries


def read_checksums(path: str | Path) -> list[ChecksumEntry]:
    """Parse a `sha256sum` file. Both text (`  `) and binary (` *`) markers are accepted."""
    p = Path(path)
    if not p.is_file():
        raise ArtifactError(f"Checksum file not found: {p}")
    entries: list[ChecksumEntry] = []
    for lineno, raw in enumerate(p.read_text(encoding="utf-8").splitlines(), start=1):
        if not raw.strip():
            continue
        m = _CHECKSUM_LINE_RE.match(raw)
        if not m:
            raise ArtifactError(f"{p}:{lineno}: malformed checksum line: {raw!r}")
        entries.append(ChecksumEntry(digest=m.group(1).lower(), filename=m.group(3)))
    return entries


def verify_checksums(path: str | Path) -> list[str]:
    """
    Recompute every digest listed in a checksum file.
    Returns the filenames that are missing or do not match (empty list when all match).
    """
    p = Path(path)
    bad: list[str] = []
    for entry in read_checksums(p):
        target = p.parent / entry.filename
        if not target.is_file():
            logger.error("%s: missing", entry.filename)
            bad.append(entry.filename)
            continue
        if sha256_file(target) != entry.digest:
            logger.error("%s: FAILED", entry.filename)
            bad.append(entry.filename)
        else:
            logger.info("%s: OK", entry.filename)
    return bad


def package(source: str | Path, releases_dir: str | Path, binary: str, version: str) -> ArtifactSet:
    """Copy the binary, build both archives and write the checksum file."""
    staged = stage_binary(source, releases_dir, binary, version)
    logger.info("Creating release artifacts...")
    create_tarball(staged)
    create_zip(staged)
    write_checksums(releases_dir, staged.name)
    return ArtifactSet.for_version(Path(releases_dir), binary, version)


def check_static(binary_path: Path, runner: Runner) -> StaticCheck:
    """
    Ask `ldd` whether the binary links any shared libraries.

    `ldd` exits non-zero ("not a dynamic executable") for a fully static binary.
    """
    proc = runner.run_status(["ldd", str(binary_path)])
    output = (proc.stdout or "").strip()
    if proc.returncode == 127:
        return StaticCheck(is_static=False, detail=output or "ldd not found", verified=False)
    lowered = output.lower()
    if proc.returncode != 0 or "not a dynamic executable" in lowered or "statically linked" in lowered:
        return StaticCheck(is_static=True, detail=output or "not a dynamic executable")
    return StaticCheck(is_static=False, detail=output)
