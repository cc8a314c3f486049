#!/usr/bin/env python3
"""
otp_cli.py — command line front end for totp_core + totp_store (multi-user)

Subcommands:
- init   : create a secret for a user, print the otpauth URI
- totp   : show the user's TOTP code in real time
- at     : print the code valid at a given timestamp
- uri    : print the otpauth URI of a user
- verify : verify a code, with leeway and replay protection (exit 1 if invalid)

eg..:
    totp-cli init --user alice --issuer MyService --period 60
    totp-cli totp --user alice
    totp-cli at --user alice --timestamp 1700000000
    totp-cli verify --user alice --code 123456 --leeway 10
"""

import argparse
import sys
import time

from totp_core.clock import FrozenClock, SystemClock
from totp_core.errors import OTPError
from totp_core.totp import DEFAULT_EPOCH, DEFAULT_PERIOD, TOTP, TOTPConfig
from totp_core.otp_core import DEFAULT_DIGEST, DEFAULT_DIGITS, SUPPORTED_DIGESTS, check_label
from totp_store import db_manager
from totp_store.setup_database import DATABASE_FILE


def log(msg: str, verbose: bool):
    if verbose:
        print(f"[+] {msg}")


def _load_totp(args, clock):
    cfg = db_manager.get_user_config(args.user, db_path=args.db)
    if cfg is None:
        print(f"[!] User '{args.user}' not found. Run 'init' first.")
        return None
    return TOTP(TOTPConfig.from_dict(cfg), clock)


# --- CLI command handlers ---
def cmd_init(args):
    # the URI is printed after the insert, refuse a bad label before anything is stored
    check_label(args.user, args.issuer)
    ok, result = db_manager.add_new_user(
        args.user, digits=args.digits, period=args.period,
        epoch=args.epoch, digest=args.digest, db_path=args.db,
    )
    if not ok:
        print(f"[!] {result}")
        return 1
    log(f"Secret stored for '{args.user}' in {args.db}", args.verbose)

    totp = _load_totp(args, SystemClock())
    print(f"[*] otpauth URI for user '{args.user}':")
    print("    TOTP:", totp.provisioning_uri(args.user, issuer=args.issuer))
    return 0


def cmd_totp(args):
    totp = _load_totp(args, SystemClock())
    if totp is None:
        return 1

    print(f"[user={args.user}] Press Ctrl+C to quit. Generating {totp.digits}-digit TOTP every {totp.period}s...\n")
    last_code = None
    try:
        while True:
            code, remaining = totp.now(), totp.expires_in()
            if code != last_code:
                print(f"TOTP ({totp.digits}d): {code}  (valid ~{remaining:2d}s)")
                last_code = code
            else:
                print(f".. {remaining:2d}s left", end='\r', flush=True)
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nBye.")
    return 0


def cmd_at(args):
    totp = _load_totp(args, FrozenClock(args.timestamp))
    if totp is None:
        return 1
    print(f"[user={args.user}] TOTP(timecode={totp.timecode(args.timestamp)}): {totp.now()}")
    return 0


def cmd_uri(args):
    totp = _load_totp(args, SystemClock())
    if totp is None:
        return 1
    print(f"[user={args.user}] TOTP URI:\n", totp.provisioning_uri(args.user, issuer=args.issuer))
    return 0


def cmd_verify(args):
    clock = SystemClock()

    def check(cfg, previous_timestamp):
        log(f"watermark={previous_timestamp}, leeway={args.leeway}", args.verbose)
        totp = TOTP(TOTPConfig.from_dict(cfg), clock)
        return totp.verify_with_previous_timestamp(args.code, args.timestamp, args.leeway, previous_timestamp)

    try:
        accepted = db_manager.record_verification(args.user, args.code, check, db_path=args.db)
    except LookupError as e:
        print(f"[!] {e}")
        return 1

    if accepted is not None:
        print(f"[user={args.user}] [+] TOTP code is VALID (timestamp = {accepted})")
        return 0
    print(f"[user={args.user}] [-] TOTP code is INVALID")
    return 1


def cmd_help(args):
    print("'totp-cli -h' for help.")
    return 0


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Multi-user TOTP CLI with leeway and replay protection")
    p.add_argument("--db", default=DATABASE_FILE, help="SQLite database file")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_help)

    # init
    pi = sub.add_parser("init", help="Generate OTP secret for a user")
    pi.add_argument("--user", required=True, help="Username (separate secret per user)")
    pi.add_argument("--issuer", default="otp-tool", help="Issuer label for otpauth URI")
    pi.add_argument("--digits", type=int, default=DEFAULT_DIGITS, help="Number of OTP digits")
    pi.add_argument("--period", type=int, default=DEFAULT_PERIOD, help="TOTP time step (seconds)")
    pi.add_argument("--epoch", type=int, default=DEFAULT_EPOCH, help="T0, start of the first step")
    pi.add_argument("--digest", default=DEFAULT_DIGEST, choices=SUPPORTED_DIGESTS)
    pi.add_argument("--verbose", action="store_true", help="Verbose output")
    pi.set_defaults(func=cmd_init)

    # totp
    pt = sub.add_parser("totp", help="Show TOTP code in real time")
    pt.add_argument("--user", required=True, help="Username")
    pt.set_defaults(func=cmd_totp)

    # at
    pa = sub.add_parser("at", help="TOTP code at a given timestamp")
    pa.add_argument("--user", required=True, help="Username")
    pa.add_argument("--timestamp", type=int, required=True, help="Seconds since the Unix epoch")
    pa.set_defaults(func=cmd_at)

    # uri
    pu = sub.add_parser("uri", help="Print otpauth URI")
    pu.add_argument("--user", required=True, help="Username")
    pu.add_argument("--issuer", default="otp-tool")
    pu.set_defaults(func=cmd_uri)

    # verify
    pv = sub.add_parser("verify", help="Verify a TOTP code (refuses reused codes)")
    pv.add_argument("--user", required=True, help="Username")
    pv.add_argument("--code", required=True, help="OTP code to verify")
    pv.add_argument("--leeway", type=int, help="Allowed drift in seconds (< period)")
    pv.add_argument("--timestamp", type=int, help="Verify at this time instead of now")
    pv.add_argument("--verbose", action="store_true")
    pv.set_defaults(func=cmd_verify)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except OTPError as e:
        print(f"[!] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
