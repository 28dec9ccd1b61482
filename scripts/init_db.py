import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.breakroom.models import User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the initial account in an idempotent way.
    Does NOT overwrite an existing user's password.
    """
    admin_handle = (os.environ.get("ADMIN_HANDLE") or "admin").strip()
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@prosaurus.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///breakroom.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        user = (
            s.query(User)
            .filter((User.handle == admin_handle) | (User.email == admin_email))
            .first()
        )
        if not user:
            user = User(
                handle=admin_handle,
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
            print(f"Created user '{admin_handle}'.")
        else:
            print(f"User '{user.handle}' already exists; leaving it unchanged.")

    print("Initialized database (seed_only).")
    print(f"Admin handle: {admin_handle}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
