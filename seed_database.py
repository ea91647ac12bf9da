#!/usr/bin/env python3
"""
Database seeding utility.

Clears the users, books and feedback collections and fills them with
sample data: two admins, a handful of readers, one suspended account,
a shelf of classics and some feedback (one entry hidden).
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from catalog.database import CatalogDatabase
from catalog.models import FeedbackStatus, UserRole
from catalog.security import PasswordHasher
from utilities.config import config
from utilities.logger import setup_logging

USERS = [
    ("admin@bookportal.com", "admin123", "Admin", "User", UserRole.ADMIN, True),
    ("superadmin@bookportal.com", "admin123", "Super", "Admin", UserRole.ADMIN, True),
    ("john.doe@example.com", "password123", "John", "Doe", UserRole.USER, True),
    ("jane.smith@example.com", "password123", "Jane", "Smith", UserRole.USER, True),
    ("mike.johnson@example.com", "password123", "Mike", "Johnson", UserRole.USER, True),
    ("sarah.wilson@example.com", "password123", "Sarah", "Wilson", UserRole.USER, True),
    ("david.brown@example.com", "password123", "David", "Brown", UserRole.USER, True),
    ("suspended@example.com", "password123", "Suspended", "User", UserRole.USER, False),
]

# (title, author, isbn, index of the creator in USERS)
BOOKS = [
    ("The Great Gatsby", "F. Scott Fitzgerald", "978-0-7432-7356-5", 0),
    ("To Kill a Mockingbird", "Harper Lee", "978-0-06-112008-4", 0),
    ("1984", "George Orwell", "978-0-452-28423-4", 1),
    ("Pride and Prejudice", "Jane Austen", "978-0-14-143951-8", 2),
    ("The Catcher in the Rye", "J.D. Salinger", "978-0-316-76948-0", 2),
    ("Wuthering Heights", "Emily Brontë", "978-0-14-143955-6", 3),
    ("Moby Dick", "Herman Melville", "978-0-14-243724-7", 4),
    ("The Hobbit", "J.R.R. Tolkien", "978-0-547-92822-7", 5),
]

# (index of the author in USERS, index of the book in BOOKS, rating, comment, status)
FEEDBACK = [
    (2, 0, 5, "A dazzling portrait of the Jazz Age.", FeedbackStatus.VISIBLE),
    (3, 0, 4, "Beautiful prose, a little slow in the middle.", FeedbackStatus.VISIBLE),
    (4, 1, 5, "Every reader should meet Atticus Finch.", FeedbackStatus.VISIBLE),
    (5, 2, 5, "Frighteningly relevant.", FeedbackStatus.VISIBLE),
    (6, 3, 4, "Witty and sharp.", FeedbackStatus.VISIBLE),
    (2, 6, 2, "Too many chapters about whales.", FeedbackStatus.VISIBLE),
    (3, 7, 5, "The perfect adventure.", FeedbackStatus.VISIBLE),
    (4, 5, 1, "Spam spam spam, buy cheap books here!", FeedbackStatus.HIDDEN),
]


async def seed_database():
    """Replace all data with the sample data set."""
    db = CatalogDatabase(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        use_transactions=config.mongodb_transactions
    )
    hasher = PasswordHasher(rounds=config.bcrypt_rounds)

    await db.connect()
    try:
        print("🧹 Clearing existing data...")
        await db.feedback.delete_many({})
        await db.books.delete_many({})
        await db.users.delete_many({})

        print("👥 Seeding users...")
        users = []
        for email, password, first_name, last_name, role, is_active in USERS:
            users.append(await db.insert_user({
                "email": email,
                "password_hash": hasher.hash(password),
                "first_name": first_name,
                "last_name": last_name,
                "role": role,
                "is_active": is_active,
            }))

        print("📚 Seeding books...")
        books = []
        for title, author, isbn, creator in BOOKS:
            books.append(await db.insert_book({
                "title": title,
                "author": author,
                "isbn": isbn,
                "created_by": users[creator].id,
            }))

        print("💬 Seeding feedback...")
        for user_index, book_index, rating, comment, status in FEEDBACK:
            await db.insert_feedback({
                "rating": rating,
                "comment": comment,
                "status": status,
                "user_id": users[user_index].id,
                "book_id": books[book_index].id,
            })

        print("\n📊 Seeding Summary:")
        print("=" * 50)
        print(f"👥 Users: {len(users)}")
        print(f"📚 Books: {len(books)}")
        print(f"💬 Feedback: {len(FEEDBACK)}")
        print("\n🔑 Test credentials:")
        print("  Admin:     admin@bookportal.com / admin123")
        print("  Reader:    john.doe@example.com / password123")
        print("  Suspended: suspended@example.com / password123")
    finally:
        await db.disconnect()


async def main():
    """Main function."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    try:
        await seed_database()
    except Exception as e:
        print(f"❌ Seeding failed: {e}")
        sys.exit(1)

    print("\n🎉 Database seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
