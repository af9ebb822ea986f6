"""User-Agent string sent with index and archive downloads."""

import platform
from pathlib import Path
from typing import Optional


def _read(path: str) -> Optional[str]:
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def extract_os_release_field(content: str, field: str) -> Optional[str]:
    for line in content.splitlines():
        if line.startswith(f"{field}="):
            return line.split("=", 1)[1].strip().strip('"').strip("'")
    return None


def get_dist() -> str:
    if platform.system() == "Windows":
        release = platform.release()
        return f"Windows/{release}" if release else "Windows"

    content = _read("/etc/os-release")
    if content:
        name = extract_os_release_field(content, "NAME")
        if name:
            version = extract_os_release_field(content, "VERSION_ID") or extract_os_release_field(content, "BUILD_ID")
            return f"{name}/{version}" if version else name

    content = _read("/etc/redhat-release")
    if content:
        return content.strip()

    content = _read("/etc/debian_version")
    if content:
        return f"Debian/{content.strip()}"

    return ""


def build_user_agent(version: str) -> str:
    os_name = platform.system() or "unknown"
    cpu = platform.machine() or "unknown"
    return f"Suricata-Rulesync/{version} (OS: {os_name}; CPU: {cpu}; Dist: {get_dist()})"
