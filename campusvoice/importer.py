# Campus grievance seed data importer
# Populates MongoDB with admin accounts and sample grievances
#
# Usage:  python -m campusvoice.importer

import asyncio
from concurrent.futures import ThreadPoolExecutor

from pymongo import MongoClient

from . import config
from .classifier import RuleBasedClassifier
from .seed.admins import import_admins
from .seed.grievances import GRIEVANCES, import_grievances
from .store import MongoGrievanceStore


async def main():
    print("=" * 64)
    print("  CAMPUS GRIEVANCE SEED IMPORT")
    print("=" * 64)
    print(f"  MongoDB:  {config.MONGODB_URL}")
    print(f"  Database: {config.MONGODB_DB}")

    client = MongoClient(config.MONGODB_URL, tz_aware=True)
    try:
        db = client[config.MONGODB_DB]

        print("\n[1/3] Clearing existing grievances")
        result = db.grievances.delete_many({})
        print(f"  => {result.deleted_count} removed")

        print("\n[2/3] Admins")
        n_admins = import_admins(db.admins, config.ADMIN_ACCOUNTS)

        print("\n[3/3] Grievances")
        store = MongoGrievanceStore(db.grievances, ThreadPoolExecutor(max_workers=4))
        await store.ensure_indexes()
        await import_grievances(store, RuleBasedClassifier())
    finally:
        client.close()

    print("\n" + "=" * 64)
    print("  IMPORT COMPLETE")
    print("=" * 64)
    print(f"  Admins:     {n_admins}")
    print(f"  Grievances: {len(GRIEVANCES)}")
    if not n_admins:
        print("\n  No admins imported: set ADMIN_ACCOUNTS=email:password[,email:password]")
    print("=" * 64)


if __name__ == "__main__":
    asyncio.run(main())
