#!/usr/bin/env python3
"""Generate a VAPID key pair for Web Push.

Prints the two values to put in the environment (or .env). Keep
VAPID_PRIVATE_KEY out of version control.

Usage:
    uv run scripts/generate_vapid_keys.py [--subject mailto:ops@example.com]
"""

import argparse

from classpush.notifications.keys import generate_vapid_keypair
from classpush.notifications.vapid import validate_contact_uri


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--subject",
        help="Contact URI to print as VAPID_SUBJECT (mailto: or https:)",
    )
    args = parser.parse_args()

    if args.subject:
        validate_contact_uri(args.subject)

    vapid = generate_vapid_keypair()
    print(f"VAPID_PUBLIC_KEY={vapid.public_key_b64}")
    print(f"VAPID_PRIVATE_KEY={vapid.private_key_b64}")
    if args.subject:
        print(f"VAPID_SUBJECT={args.subject}")


if __name__ == "__main__":
    main()
