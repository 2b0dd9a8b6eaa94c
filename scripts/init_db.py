"""Create the database schema for the configured DATABASE_URL"""

from budget_tracker.config import settings
from budget_tracker.infrastructure.database.session import init_db

if __name__ == "__main__":
    init_db()
    print("DB ready at", settings.database_url.rsplit("@", 1)[-1])
