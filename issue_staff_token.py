import sys
from dealer_portal.core.security import create_access_token
from dealer_portal.core.enums import UserRole


def issue_staff_token(username: str, expires_minutes: int | None = None) -> str:
    return create_access_token(username, UserRole.STAFF, expires_minutes=expires_minutes)


def main():
    if len(sys.argv) < 2:
        print("Usage: python issue_staff_token.py <username> [expires_minutes]")
        sys.exit(1)
    
    username = sys.argv[1].strip()
    if not username:
        print("Error: username cannot be empty")
        sys.exit(1)
    
    expires = None
    if len(sys.argv) > 2:
        try:
            expires = int(sys.argv[2])
        except ValueError:
            print(f"Error: expires_minutes must be an integer, got '{sys.argv[2]}'")
            sys.exit(1)
    
    token = issue_staff_token(username, expires)
    print(f"Staff token for '{username}':")
    print(token)
    sys.exit(0)


if __name__ == "__main__":
    main()
