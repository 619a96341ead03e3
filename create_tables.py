"""
Create the schema and seed the default role.

    python create_tables.py
    python create_tables.py --super-admin-email admin@example.com

The super admin user must already be registered.
"""

import argparse
import logging
from app.db.database import Base, engine, SessionLocal
from app import models  # noqa: F401  registers every table on Base.metadata
from app.services.role_service import get_or_create_default_role, initialize_super_admin

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def main():
    parser = argparse.ArgumentParser(description="Create WorkTrack tables")
    parser.add_argument("--super-admin-email", help="Promote this registered user to Super Admin")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully.")

    db = SessionLocal()
    try:
        role = get_or_create_default_role(db)
        db.commit()
        logger.info(f"Default role ready: {role.name} ({role.level})")

        if args.super_admin_email:
            initialize_super_admin(db, args.super_admin_email)
    finally:
        db.close()

if __name__ == "__main__":
    main()
