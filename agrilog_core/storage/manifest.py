from __future__ import annotations

import json

from agrilog_core.storage.writer import WriteResult, write_bytes


def write_manifest(
    manifest: dict[str, object],
    dest_uri: str,
    *,
    compact: bool = False,
) -> WriteResult:
    if compact:
        payload = json.dumps(manifest, separators=(",", ":"), sort_keys=False).encode(
            "utf-8"
        )
    else:
        payload = json.dumps(manifest, indent=2, sort_keys=True).encode("utf-8")
    return write_bytes(payload, dest_uri, suffix=".json")
