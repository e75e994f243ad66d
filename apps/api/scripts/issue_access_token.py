"""
Issue Access Token

Mints an access token for a reviewer or applicant account, for calling the
API locally without the identity service. Uses JWT_SECRET_KEY from the
environment.

Usage:
    cd apps/api
    python scripts/issue_access_token.py --role staff --email reviewer@example.com
    python scripts/issue_access_token.py --role student --account-id <uuid>
"""

import argparse
import sys
import uuid
from datetime import timedelta
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from admissions.core.security import create_access_token
from admissions.modules.shared import ActorRole


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a local access token")
    parser.add_argument("--role", choices=[role.value for role in ActorRole], required=True)
    parser.add_argument("--account-id", default=None, help="Account UUID (random if omitted)")
    parser.add_argument("--email", default="")
    parser.add_argument("--name", default=None)
    parser.add_argument("--hours", type=int, default=8, help="Token lifetime in hours")
    args = parser.parse_args()

    account_id = str(uuid.UUID(args.account_id)) if args.account_id else str(uuid.uuid4())
    token = create_access_token(
        account_id,
        claims={"email": args.email, "role": args.role, "name": args.name},
        expires_delta=timedelta(hours=args.hours),
    )

    print(f"Account ID: {account_id}")
    print(f"Role: {args.role}")
    print(f"Token: {token}")


if __name__ == "__main__":
    main()
