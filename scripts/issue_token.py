import os
import sys

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.security import issue_token

# Development helper: prints a sign-in link for a local user.
# python scripts/issue_token.py <user_id> [base_url]
if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/issue_token.py <user_id> [base_url]")
        sys.exit(1)

    user_id = sys.argv[1]
    base_url = sys.argv[2].rstrip("/") if len(sys.argv) > 2 else "http://localhost:8000"
    token = issue_token(user_id)
    print(token)
    print(f"{base_url}/sign-in?token={token}")
