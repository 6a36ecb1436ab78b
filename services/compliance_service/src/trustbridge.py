"""
TrustBridge: tamper-evident compliance artifacts.

A manifest fixes the content hash of every artifact, an append-only hash-chained
ledger records what happened to them, and a certificate binds the two with a
SHA-512 signature digest.
"""

import hashlib
import html
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from ...common.logging import jlog
from ...common.timeutils import utcnow_iso

GENESIS_HASH = "0" * 64
CHUNK_SIZE = 1024 * 1024

def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

def sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()

def hash_bytes(data: bytes, algorithm: str = "sha256") -> str:
    return hashlib.new(algorithm, data).hexdigest()

def hash_file(path: str, algorithm: str = "sha256") -> Dict[str, Any]:
    digest = hashlib.new(algorithm)
    size = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
            size += len(chunk)
    return {"path": str(path), "size": size, algorithm: digest.hexdigest()}

def compute_manifest_hash(algorithm: str, files: List[Dict[str, Any]]) -> str:
    return sha256_hex(canonical_json({"algorithm": algorithm, "files": files}))

def build_manifest(
    paths: Iterable[str],
    *,
    algorithm: str = "sha256",
    read_bytes: Optional[Callable[[str], bytes]] = None,
) -> Dict[str, Any]:
    """Per-file size and digest, sorted by path. Local files unless read_bytes is given."""
    files = []
    for path in sorted(set(str(p) for p in paths)):
        if read_bytes is None:
            files.append(hash_file(path, algorithm))
        else:
            data = read_bytes(path)
            files.append({"path": path, "size": len(data), algorithm: hash_bytes(data, algorithm)})
    manifest = {
        "algorithm": algorithm,
        "files": files,
        "manifest_hash": compute_manifest_hash(algorithm, files),
    }
    jlog(event="trustbridge_manifest_built", file_count=len(files), manifest_hash=manifest["manifest_hash"])
    return manifest

def verify_manifest(manifest: Dict[str, Any]) -> bool:
    return compute_manifest_hash(manifest.get("algorithm", "sha256"), manifest.get("files", [])) == manifest.get(
        "manifest_hash"
    )

@dataclass
class LedgerVerification:
    valid: bool
    length: int
    broken_index: Optional[int] = None
    reason: Optional[str] = None

class Ledger:
    """Append-only, hash-chained event ledger."""

    def __init__(self, entries: Optional[List[Dict[str, Any]]] = None):
        self.entries: List[Dict[str, Any]] = list(entries or [])

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def head_hash(self) -> str:
        return self.entries[-1]["entry_hash"] if self.entries else GENESIS_HASH

    def hash_at(self, length: int) -> str:
        """Head hash of the ledger as it was when it had `length` entries."""
        return self.entries[length - 1]["entry_hash"] if length > 0 else GENESIS_HASH

    @staticmethod
    def compute_entry_hash(entry: Dict[str, Any]) -> str:
        body = {k: v for k, v in entry.items() if k != "entry_hash"}
        return sha256_hex(body["previous_hash"] + canonical_json(body))

    def append(self, event: str, payload: Any, timestamp: Optional[str] = None) -> Dict[str, Any]:
        entry = {
            "index": len(self.entries),
            "timestamp": timestamp or utcnow_iso(),
            "event": event,
            "payload_hash": sha256_hex(canonical_json(payload)),
            "previous_hash": self.head_hash,
        }
        entry["entry_hash"] = self.compute_entry_hash(entry)
        self.entries.append(entry)
        jlog(event="trustbridge_ledger_appended", index=entry["index"], ledger_event=event)
        return entry

    def verify(self) -> LedgerVerification:
        previous = GENESIS_HASH
        for i, entry in enumerate(self.entries):
            if entry.get("index") != i:
                return LedgerVerification(False, len(self.entries), i, "index out of sequence")
            if entry.get("previous_hash") != previous:
                return LedgerVerification(False, len(self.entries), i, "previous hash mismatch")
            if self.compute_entry_hash(entry) != entry.get("entry_hash"):
                return LedgerVerification(False, len(self.entries), i, "entry hash mismatch")
            previous = entry["entry_hash"]
        return LedgerVerification(True, len(self.entries))

    @classmethod
    def load(cls, path: str) -> "Ledger":
        p = Path(path)
        if not p.exists():
            return cls()
        return cls(json.loads(p.read_text(encoding="utf-8")))

    def save(self, path: str) -> None:
        Path(path).write_text(json.dumps(self.entries, indent=2, ensure_ascii=False), encoding="utf-8")

def _signature(manifest_hash: str, ledger_head_hash: str, issuer: str, issued_at: str) -> str:
    return hashlib.sha512((manifest_hash + ledger_head_hash + issuer + issued_at).encode("utf-8")).hexdigest()

def issue_certificate(
    manifest: Dict[str, Any], ledger: Ledger, issuer: str, issued_at: Optional[str] = None
) -> Dict[str, Any]:
    issued_at = issued_at or utcnow_iso()
    signature = _signature(manifest["manifest_hash"], ledger.head_hash, issuer, issued_at)
    certificate = {
        "certificate_id": f"tb-{signature[:16]}",
        "issuer": issuer,
        "issued_at": issued_at,
        "manifest_hash": manifest["manifest_hash"],
        "ledger_head_hash": ledger.head_hash,
        "ledger_length": len(ledger),
        "file_count": len(manifest.get("files", [])),
        "algorithm": "sha512",
        "signature": signature,
    }
    jlog(event="trustbridge_certificate_issued", certificate_id=certificate["certificate_id"], issuer=issuer)
    return certificate

def verify_certificate(certificate: Dict[str, Any], manifest: Dict[str, Any], ledger: Ledger) -> List[str]:
    """Problems found; an empty list means the certificate holds."""
    problems = []
    if not verify_manifest(manifest):
        problems.append("manifest hash does not match its files")
    if certificate.get("manifest_hash") != manifest.get("manifest_hash"):
        problems.append("certificate was issued for a different manifest")

    chain = ledger.verify()
    if not chain.valid:
        problems.append(f"ledger broken at entry {chain.broken_index}: {chain.reason}")
    length = certificate.get("ledger_length", 0)
    if length > len(ledger) or ledger.hash_at(length) != certificate.get("ledger_head_hash"):
        problems.append("ledger head does not match the certificate")

    expected = _signature(
        certificate.get("manifest_hash", ""),
        certificate.get("ledger_head_hash", ""),
        certificate.get("issuer", ""),
        certificate.get("issued_at", ""),
    )
    if expected != certificate.get("signature"):
        problems.append("signature mismatch")
    return problems

CERTIFICATE_TEMPLATE = """<!DOCTYPE html>
<html lang="en-CA">
<head>
<meta charset="utf-8">
<title>TrustBridge Certificate {certificate_id}</title>
<style>
body {{ font-family: sans-serif; margin: 2rem; color: #1f2933; }}
table {{ border-collapse: collapse; }}
td, th {{ border: 1px solid #cbd2d9; padding: 0.3rem 0.6rem; text-align: left; }}
code {{ word-break: break-all; }}
</style>
</head>
<body>
<h1>TrustBridge Compliance Certificate</h1>
<table>
<tr><th>Certificate</th><td>{certificate_id}</td></tr>
<tr><th>Issuer</th><td>{issuer}</td></tr>
<tr><th>Issued at</th><td>{issued_at}</td></tr>
<tr><th>Files</th><td>{file_count}</td></tr>
<tr><th>Manifest hash</th><td><code>{manifest_hash}</code></td></tr>
<tr><th>Ledger head ({ledger_length} entries)</th><td><code>{ledger_head_hash}</code></td></tr>
<tr><th>Signature ({algorithm})</th><td><code>{signature}</code></td></tr>
</table>
{files_table}
</body>
</html>
"""

def render_certificate_html(certificate: Dict[str, Any], manifest: Optional[Dict[str, Any]] = None) -> str:
    files_table = ""
    if manifest:
        algorithm = manifest.get("algorithm", "sha256")
        rows = "\n".join(
            f"<tr><td>{html.escape(f['path'])}</td><td>{f['size']}</td><td><code>{html.escape(str(f.get(algorithm, '')))}</code></td></tr>"
            for f in manifest.get("files", [])
        )
        files_table = (
            f"<h2>Certified artifacts</h2>\n<table>\n<tr><th>Path</th><th>Bytes</th><th>{html.escape(algorithm)}</th></tr>\n"
            f"{rows}\n</table>"
        )
    fields = {k: html.escape(str(certificate.get(k, ""))) for k in (
        "certificate_id", "issuer", "issued_at", "file_count", "manifest_hash",
        "ledger_length", "ledger_head_hash", "algorithm", "signature",
    )}
    return CERTIFICATE_TEMPLATE.format(files_table=files_table, **fields)
