"""
Reset the database to demo fixtures.

Deletes every investment and user, then inserts two demo users and ten demo
investments with fixed historical timestamps. Safe to re-run.

Usage:
  python -m farminvest.seed
  farminvest-seed
"""
import logging
import sys
from typing import Any, Dict, List, Tuple

import psycopg2
import psycopg2.extras

from farminvest import config
from farminvest.auth_utils import hash_password

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

USERS: List[Dict[str, str]] = [
    {"name": "Demo User", "email": "demo@farminvest.com", "password": DEMO_PASSWORD},
    {"name": "John Admin", "email": "admin@farminvest.com", "password": DEMO_PASSWORD},
]

INVESTMENTS: List[Dict[str, Any]] = [
    {"farmer_name": "John Doe", "amount": 5000.00, "crop": "Wheat", "created_at": "2025-12-01 10:00:00"},
    {"farmer_name": "Jane Smith", "amount": 7500.50, "crop": "Rice", "created_at": "2025-12-05 14:30:00"},
    {"farmer_name": "Robert Johnson", "amount": 3200.00, "crop": "Corn", "created_at": "2025-12-10 09:15:00"},
    {"farmer_name": "Emily Davis", "amount": 10000.00, "crop": "Soybeans", "created_at": "2025-12-15 16:45:00"},
    {"farmer_name": "Michael Brown", "amount": 4500.75, "crop": "Cotton", "created_at": "2025-12-18 11:20:00"},
    {"farmer_name": "Sarah Wilson", "amount": 6800.00, "crop": "Sugarcane", "created_at": "2025-12-20 08:00:00"},
    {"farmer_name": "David Lee", "amount": 2500.00, "crop": "Potatoes", "created_at": "2025-12-22 13:10:00"},
    {"farmer_name": "Lisa Anderson", "amount": 8900.25, "crop": "Tomatoes", "created_at": "2025-12-25 15:55:00"},
    {"farmer_name": "James Taylor", "amount": 5500.00, "crop": "Onions", "created_at": "2025-12-28 10:30:00"},
    {"farmer_name": "Jennifer Martinez", "amount": 12000.00, "crop": "Grapes", "created_at": "2025-12-30 17:00:00"},
]


# PUBLIC_INTERFACE
def seed_database(conn) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Wipe and repopulate both tables. Returns the stored users and investments."""
    with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
        # investments first, in case a foreign key to users is added later
        cur.execute("DELETE FROM investments")
        cur.execute("DELETE FROM users")

        for user in USERS:
            cur.execute(
                "INSERT INTO users (name, email, password) VALUES (%s, %s, %s)",
                [user["name"], user["email"], hash_password(user["password"])],
            )

        for inv in INVESTMENTS:
            cur.execute(
                "INSERT INTO investments (farmer_name, amount, crop, created_at) VALUES (%s, %s, %s, %s)",
                [inv["farmer_name"], inv["amount"], inv["crop"], inv["created_at"]],
            )

        cur.execute("SELECT id, name, email FROM users ORDER BY id")
        users = [dict(r) for r in cur.fetchall()]
        cur.execute("SELECT id, farmer_name, amount, crop, created_at FROM investments ORDER BY created_at DESC")
        investments = [dict(r) for r in cur.fetchall()]
    return users, investments


def print_summary(users: List[Dict[str, Any]], investments: List[Dict[str, Any]]) -> None:
    print(f"Seeded {len(users)} users and {len(investments)} investments")
    print("\nUsers in database:")
    for u in users:
        print(f"   - {u['name']} ({u['email']})")
    print("\nInvestments in database:")
    for inv in investments:
        print(f"   - {inv['farmer_name']}: ${inv['amount']} ({inv['crop']})")
    print("\nTest login credentials:")
    print(f"   Email: {USERS[0]['email']}")
    print(f"   Password: {USERS[0]['password']}")


# PUBLIC_INTERFACE
def main() -> int:
    """Seed the configured database; returns the process exit code."""
    config.configure_logging()
    conn = None
    try:
        conn = psycopg2.connect(config.build_dsn())
        conn.autocommit = True
        logger.info("Connected to database")
        users, investments = seed_database(conn)
    except psycopg2.Error:
        logger.exception("Error seeding database")
        return 1
    finally:
        if conn is not None:
            conn.close()

    print_summary(users, investments)
    print("\nDatabase seeding complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
