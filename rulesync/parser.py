"""Line-oriented parser for Suricata rule files.

Parsing is best effort: lines that don't look like rules are skipped, and a
missing or malformed gid, rev or msg falls back to its default instead of
rejecting the line.
"""

import re
from typing import List, Optional

from .models import RuleRecord

RULE_PATTERN = re.compile(r"^(#?\s*)?(alert|drop|pass|reject)\s+.*?sid:\s*(\d+).*?;")
SID_PATTERN = re.compile(r"sid:\s*(\d+)")
GID_PATTERN = re.compile(r"gid:\s*(\d+)")
REV_PATTERN = re.compile(r"rev:\s*(\d+)")
MSG_PATTERN = re.compile(r'msg:\s*"([^"]+)"')

# Identifiers are unsigned 32-bit; anything larger is treated as malformed
MAX_ID = 2 ** 32 - 1

RULE_FILE_EXTENSION = ".rules"


def _int_field(pattern: re.Pattern, line: str, default: int) -> int:
    match = pattern.search(line)
    if not match:
        return default
    value = int(match.group(1))
    if value > MAX_ID:
        return default
    return value


def parse_rule_line(line: str) -> Optional[RuleRecord]:
    """Parse a single line, returning None if it isn't an acceptable rule."""
    trimmed = line.strip()
    if not trimmed:
        return None
    if trimmed.startswith("#") and "sid:" not in trimmed:
        return None
    if not RULE_PATTERN.match(trimmed):
        return None

    sid = _int_field(SID_PATTERN, trimmed, 0)
    if sid <= 0:
        return None

    msg_match = MSG_PATTERN.search(trimmed)

    return RuleRecord(
        raw=trimmed,
        enabled=not trimmed.startswith("#"),
        sid=sid,
        gid=_int_field(GID_PATTERN, trimmed, 1),
        rev=_int_field(REV_PATTERN, trimmed, 1),
        msg=msg_match.group(1) if msg_match else "",
    )


def parse_rules(content: bytes) -> List[RuleRecord]:
    """Parse every rule in a rule file's raw bytes.

    Invalid UTF-8 is replaced rather than treated as an error.
    """
    text = content.decode("utf-8", errors="replace")
    rules = []
    # Only "\n" ends a line; "\r" is removed by the per-line strip
    for line in text.split("\n"):
        rule = parse_rule_line(line)
        if rule is not None:
            rules.append(rule)
    return rules


def is_rule_file(filename: str) -> bool:
    return filename.lower().endswith(RULE_FILE_EXTENSION)
