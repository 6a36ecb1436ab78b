"""
TrustBridge command line.

    python -m services.compliance_service.trustbridge manifest notes/*.json --out manifest.json
    python -m services.compliance_service.trustbridge ledger-append --ledger ledger.json --event exported --payload manifest.json
    python -m services.compliance_service.trustbridge ledger-verify --ledger ledger.json
    python -m services.compliance_service.trustbridge certify --manifest manifest.json --ledger ledger.json --issuer clinic-42 --html cert.html
    python -m services.compliance_service.trustbridge verify --certificate cert.json --manifest manifest.json --ledger ledger.json
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from .src.config import settings
from .src.trustbridge import Ledger, build_manifest, issue_certificate, render_certificate_html, verify_certificate

def _load_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))

def _emit(obj: Any, out: Optional[str]) -> None:
    text = json.dumps(obj, indent=2, ensure_ascii=False)
    if out:
        Path(out).write_text(text, encoding="utf-8")
    print(text)

def cmd_manifest(args: argparse.Namespace) -> int:
    _emit(build_manifest(args.files, algorithm=args.algorithm), args.out)
    return 0

def cmd_ledger_append(args: argparse.Namespace) -> int:
    ledger = Ledger.load(args.ledger)
    payload = _load_json(args.payload) if args.payload else {}
    entry = ledger.append(args.event, payload)
    ledger.save(args.ledger)
    _emit(entry, None)
    return 0

def cmd_ledger_verify(args: argparse.Namespace) -> int:
    result = Ledger.load(args.ledger).verify()
    _emit(result.__dict__, None)
    return 0 if result.valid else 1

def cmd_certify(args: argparse.Namespace) -> int:
    manifest = _load_json(args.manifest)
    certificate = issue_certificate(manifest, Ledger.load(args.ledger), args.issuer)
    _emit(certificate, args.out)
    if args.html:
        Path(args.html).write_text(render_certificate_html(certificate, manifest), encoding="utf-8")
    return 0

def cmd_verify(args: argparse.Namespace) -> int:
    problems = verify_certificate(
        _load_json(args.certificate), _load_json(args.manifest), Ledger.load(args.ledger)
    )
    _emit({"valid": not problems, "problems": problems}, None)
    return 0 if not problems else 1

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trustbridge", description="TrustBridge compliance artifacts")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("manifest", help="Hash files into a manifest")
    p.add_argument("files", nargs="+")
    p.add_argument("--algorithm", default=settings.trustbridge_hash_algorithm)
    p.add_argument("--out", help="Write the manifest to this file")
    p.set_defaults(func=cmd_manifest)

    p = sub.add_parser("ledger-append", help="Append an event to a ledger file")
    p.add_argument("--ledger", required=True)
    p.add_argument("--event", required=True)
    p.add_argument("--payload", help="JSON file hashed into the entry")
    p.set_defaults(func=cmd_ledger_append)

    p = sub.add_parser("ledger-verify", help="Recompute the ledger hash chain")
    p.add_argument("--ledger", required=True)
    p.set_defaults(func=cmd_ledger_verify)

    p = sub.add_parser("certify", help="Issue a certificate over a manifest and ledger")
    p.add_argument("--manifest", required=True)
    p.add_argument("--ledger", required=True)
    p.add_argument("--issuer", default=settings.trustbridge_issuer)
    p.add_argument("--out", help="Write the certificate to this file")
    p.add_argument("--html", help="Also render the certificate as HTML")
    p.set_defaults(func=cmd_certify)

    p = sub.add_parser("verify", help="Check a certificate against its manifest and ledger")
    p.add_argument("--certificate", required=True)
    p.add_argument("--manifest", required=True)
    p.add_argument("--ledger", required=True)
    p.set_defaults(func=cmd_verify)
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
