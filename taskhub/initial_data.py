
# taskhub/initial_data.py

import logging
from sqlalchemy.orm import Session
from taskhub.database import SessionLocal, engine
from taskhub.models.base import Base
import taskhub.models  # noqa: F401
from taskhub.crud.user import create_user as crud_create_user, get_user_by_username
from taskhub.core.settings import settings
from taskhub.core.exceptions import UserValidationError

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("TaskHub.InitialData")

def create_initial_admin_user(db: Session) -> None:
    logger.info("Checking if initial admin user needs to be created...")
    superuser_username = settings.FIRST_SUPERUSER_USERNAME

    admin_user = get_user_by_username(db, username=superuser_username)
    if admin_user:
        logger.info(f"Admin user '{superuser_username}' already exists. No action taken.")
        return

    logger.info(f"Admin user '{superuser_username}' not found. Creating...")
    user_data = {
        "username": superuser_username,
        "email": settings.FIRST_SUPERUSER_EMAIL,
        "password": settings.FIRST_SUPERUSER_PASSWORD,
        "first_name": "Admin",
        "is_active": True,
        "role": "admin",
    }
    try:
        crud_create_user(db=db, data=user_data)
        logger.info(f"Admin user '{superuser_username}' created successfully.")
    except UserValidationError as e:
        logger.error(f"Failed to create admin user: {e.message}")

def main() -> None:
    logger.info("Initializing initial data (admin user)...")
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        create_initial_admin_user(db)
    finally:
        db.close()
    logger.info("Finished initial data setup.")

if __name__ == "__main__":
    main()
