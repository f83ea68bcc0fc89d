"""Shared fixtures for gki_builder tests."""

import io
import os
import stat
import tarfile
from pathlib import Path

import pytest

from gki_builder.config import Settings

FAKE_CLANG = """#!/bin/sh
echo "Android (12345, based on r584948) clang version 19.0.0"
echo "Target: x86_64-unknown-linux-gnu"
"""

# Stand-in for the kernel's make: prints its arguments, writes to stderr,
# produces the image for the Image target and honours exit-code overrides.
FAKE_MAKE = """#!/bin/sh
echo "make $*"
echo "stderr from make" >&2
if [ -n "${FAKE_MAKE_SLEEP:-}" ]; then
  exec sleep "$FAKE_MAKE_SLEEP"
fi
case "$*" in
  *gki_defconfig*)
    exit ${FAKE_DEFCONFIG_RC:-0}
    ;;
esac
if [ "${FAKE_IMAGE_RC:-0}" != "0" ]; then
  exit ${FAKE_IMAGE_RC}
fi
if [ -z "${FAKE_SKIP_IMAGE:-}" ]; then
  mkdir -p out/arch/arm64/boot
  printf 'junk\\000Linux version 5.15.0-android13-test (builder@host) #1 SMP\\n\\000more' > out/arch/arm64/boot/Image
fi
exit 0
"""

BANNER = "Linux version 5.15.0-android13-test (builder@host) #1 SMP"


def write_script(path: Path, content: str) -> Path:
    """Write an executable shell script."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def make_clang_tarball(content: str = FAKE_CLANG) -> bytes:
    """Build a .tar.gz shaped like the AOSP prebuilt (no top-level dir)."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        data = content.encode()
        info = tarfile.TarInfo(name="bin/clang")
        info.size = len(data)
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(data))

        lib = b"not really a library"
        info = tarfile.TarInfo(name="lib/libclang.so")
        info.size = len(lib)
        tar.addfile(info, io.BytesIO(lib))
    return buf.getvalue()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep host config (env vars, .env, gki-build.yaml) out of tests."""
    for key in list(os.environ):
        if key.startswith("GKI_") or key in ("BOT_TOKEN", "CHAT_ID"):
            monkeypatch.delenv(key, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def kernel_dir(tmp_path) -> Path:
    """Create an empty kernel source directory."""
    path = tmp_path / "kernel"
    path.mkdir()
    return path


@pytest.fixture
def settings(kernel_dir) -> Settings:
    """Settings rooted in a temporary kernel directory."""
    return Settings(kernel_dir=kernel_dir, jobs=4)


@pytest.fixture
def installed_toolchain(settings) -> Path:
    """Install fake clang and make into the toolchain bin directory."""
    bin_dir = settings.clang_root / "bin"
    write_script(bin_dir / "clang", FAKE_CLANG)
    write_script(bin_dir / "make", FAKE_MAKE)
    return bin_dir


@pytest.fixture
def anykernel_tree(settings) -> Path:
    """Create a pre-existing AnyKernel3 template tree."""
    ak = settings.anykernel_root
    (ak / ".git" / "objects").mkdir(parents=True)
    (ak / ".git" / "HEAD").write_text("ref: refs/heads/gki\n")
    (ak / ".gitignore").write_text("*.zip\n")
    (ak / "README.md").write_text("# AnyKernel3\n")
    (ak / "anykernel.sh").write_text("#!/sbin/sh\n")
    (ak / "META-INF" / "com" / "google" / "android").mkdir(parents=True)
    (ak / "META-INF" / "com" / "google" / "android" / "update-binary").write_text(
        "#!/sbin/sh\n"
    )
    (ak / "tools").mkdir()
    (ak / "tools" / "ak3-core.sh").write_text("# core\n")
    return ak


@pytest.fixture
def clang_tarball() -> bytes:
    """A clang prebuilt archive containing a working fake clang."""
    return make_clang_tarball()
