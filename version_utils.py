# version_utils.py
"""
FILE: version_utils.py
DESCRIPTION:
  Single source of truth for the firmware version string.
  - Base version: the `version:` line of config.yaml (VER.REV.PATCH).
  - Optional build metadata from SMAQ_BUILD (or SMAQ_TWEAK), appended as
    SemVer build metadata: VER.REV.PATCH+BUILD.
"""
from __future__ import annotations

import os
import re


def read_base_version(cfg_path: str) -> str:
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            for line in f:
                s = line.strip()
                if not s.startswith("version:"):
                    continue
                ver = s.split(":", 1)[1]
                ver = ver.split("#", 1)[0].strip().strip('"').strip("'")
                if ver:
                    return ver
    except OSError:
        pass
    return "Unknown"


def _sanitize_build(raw: str | None) -> str | None:
    s = (raw or "").strip()
    s = re.sub(r"[^0-9A-Za-z.-]+", "-", s)
    s = re.sub(r"\.{2,}", ".", s)
    s = re.sub(r"-{2,}", "-", s)
    s = s.strip(".-")
    return s or None


def get_build_metadata() -> str | None:
    for var in ("SMAQ_BUILD", "SMAQ_TWEAK"):
        build = _sanitize_build(os.getenv(var))
        if build:
            return build
    return None


def format_display_version(base: str, build: str | None = None, prefix: str = "v") -> str:
    if not base or base == "Unknown":
        return "Unknown"
    ver = f"{prefix}{base}"
    if build:
        ver = f"{ver}+{build}"
    return ver


def get_display_version(cfg_path: str, prefix: str = "v") -> str:
    return format_display_version(read_base_version(cfg_path), get_build_metadata(), prefix=prefix)
