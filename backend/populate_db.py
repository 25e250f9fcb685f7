import os
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

# Database models and setup
from database import SessionLocal, init_db
from models.users import User, ROLE_ADMIN
from models.category import Category
from models.book import Book
from utils.hashing import get_password_hash

# Configuration
ADMIN_NAME = os.getenv("SEED_ADMIN_NAME", "Admin")
ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@bookstore.com")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")

CATALOG = {
    "Fiction": [
        ("The Old Man and the Sea", "Ernest Hemingway", "12.50", 20),
        ("Pride and Prejudice", "Jane Austen", "9.99", 35),
        ("One Hundred Years of Solitude", "Gabriel Garcia Marquez", "14.00", 12),
    ],
    "Science": [
        ("A Brief History of Time", "Stephen Hawking", "18.75", 15),
        ("The Selfish Gene", "Richard Dawkins", "16.20", 8),
    ],
    "Programming": [
        ("Fluent Python", "Luciano Ramalho", "49.90", 10),
        ("Structure and Interpretation of Computer Programs", "Harold Abelson", "39.00", 5),
    ],
}
# End Configuration


def ensure_admin(session):
    """Creates the admin account if no user with the seed email exists."""
    admin = session.query(User).filter(User.email == ADMIN_EMAIL).first()
    if admin:
        print(f"Admin {ADMIN_EMAIL} already exists.")
        return admin
    admin = User(
        name=ADMIN_NAME,
        email=ADMIN_EMAIL,
        password_hash=get_password_hash(ADMIN_PASSWORD),
        role=ROLE_ADMIN,
    )
    session.add(admin)
    session.commit()
    print(f"Created admin {ADMIN_EMAIL}.")
    return admin


def load_catalog(session):
    """Inserts sample categories and books, skipping titles already present."""
    added = 0
    for category_name, books in CATALOG.items():
        category = session.query(Category).filter(Category.name == category_name).first()
        if not category:
            category = Category(name=category_name)
            session.add(category)
            session.flush()

        for title, author, price, stock in books:
            if session.query(Book).filter(Book.title == title).first():
                continue
            session.add(Book(
                title=title,
                author=author,
                description=f"Category: {category_name}.",
                price=Decimal(price),
                stock=stock,
                category_id=category.id,
            ))
            added += 1

    session.commit()
    print(f"Inserted {added} books.")


def populate_database():
    """Main execution function to populate database."""
    init_db()
    session = SessionLocal()
    try:
        ensure_admin(session)
        load_catalog(session)
    finally:
        session.close()


if __name__ == "__main__":
    populate_database()
