"""
Maps the running interpreter's platform onto the catalog's OS/arch naming.
"""

import platform
import sys

_OS_MAP = {
    "linux": "linux",
    "darwin": "darwin",
    "win32": "windows",
    "cygwin": "windows",
    "freebsd": "freebsd",
    "openbsd": "openbsd",
    "netbsd": "netbsd",
}

_ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv6l": "armv6l",
    "armv7l": "armv6l",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
}


def detect_os() -> str:
    for prefix, name in _OS_MAP.items():
        if sys.platform.startswith(prefix):
            return name
    return sys.platform


def detect_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_MAP.get(machine, machine)


def is_windows(target_os: str | None = None) -> bool:
    return (target_os or detect_os()) == "windows"


def executable_name(name: str, target_os: str | None = None) -> str:
    """Appends '.exe' on Windows targets."""
    return f"{name}.exe" if is_windows(target_os) else name
