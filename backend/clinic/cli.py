#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Operator tool for single field values sealed by the clinic backend.
# - encrypt: prints {"encrypted_text": ..., "iv": ...} as JSON.
# - decrypt: prints the clear text, or INVALID on stderr.
# - The secret comes from --secret or $ENCRYPTION_SECRET.
#
# Exit codes:
#   0  - success
#   1  - decryption failed / bad input
#
# Usage examples:
#   export ENCRYPTION_SECRET="..."
#   clinic-cipher encrypt --user-id 42 --text "hello"
#   clinic-cipher decrypt --user-id 42 --encrypted-text "$CT" --iv "$IV"

import argparse
import json
import os
import sys
from typing import Optional, Sequence

from clinic.crypto import ALG, FieldCipher, PBKDF2_ITERATIONS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinic-cipher",
        description=f"Encrypt or decrypt one per-user field value ({ALG}).",
    )
    parser.add_argument("--secret", help="System secret. Default from $ENCRYPTION_SECRET.",
                        default=os.getenv("ENCRYPTION_SECRET"))
    parser.add_argument("--iterations", type=int, default=PBKDF2_ITERATIONS,
                        help=f"PBKDF2 iterations (default {PBKDF2_ITERATIONS}).")
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encrypt", help="Encrypt a value for a user")
    enc.add_argument("--user-id", "-u", type=int, required=True)
    enc.add_argument("--text", "-t", help="Clear text; if omitted, read from STDIN", default=None)

    dec = sub.add_parser("decrypt", help="Decrypt a stored value for a user")
    dec.add_argument("--user-id", "-u", type=int, required=True)
    dec.add_argument("--encrypted-text", "-c", required=True)
    dec.add_argument("--iv", required=True)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not args.secret:
        print("ERR: no secret. Provide --secret or set $ENCRYPTION_SECRET", file=sys.stderr)
        return 1

    cipher = FieldCipher(args.secret, iterations=args.iterations)

    if args.command == "encrypt":
        text = args.text if args.text is not None else sys.stdin.read().rstrip("\n")
        record = cipher.encrypt(text, args.user_id)
        print(json.dumps({"encrypted_text": record.encrypted_text, "iv": record.iv}))
        return 0

    result = cipher.decrypt(args.encrypted_text, args.iv, args.user_id)
    if not result.ok:
        print("INVALID", file=sys.stderr)
        return 1
    print(result.value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
