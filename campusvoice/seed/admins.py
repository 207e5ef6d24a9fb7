# Seed data: administrator accounts (from ADMIN_ACCOUNTS)

from ..auth import hash_password
from ..store import now_utc


def import_admins(collection, accounts: dict[str, str]) -> int:
    """Upsert one ``admins`` document per account. Returns the number written."""
    print("\n  Importing admin accounts...")
    for email, password in accounts.items():
        collection.update_one(
            {"_id": email},
            {"$set": {"hashed_password": hash_password(password), "updated_at": now_utc()},
             "$setOnInsert": {"created_at": now_utc()}},
            upsert=True)
        print(f"    OK    {email}")
    print(f"  => {len(accounts)} admin accounts")
    return len(accounts)
