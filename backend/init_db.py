"""
Database initialization script
Run this to create tables and seed demo data
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import engine, Base, SessionLocal
from app.core.security import get_password_hash
from app.models import User, UserRole, Tenant
from app.services.rules import seed_default_rules


DEMO_USERS = [
    {
        "email": "admin@renta.rw",
        "first_name": "System",
        "last_name": "Administrator",
        "role": UserRole.SUPER_ADMIN.value,
        "password": "admin123",
    },
    {
        "email": "agent@renta.rw",
        "first_name": "Jean",
        "last_name": "Mugisha",
        "phone": "+250788000001",
        "role": UserRole.AGENT.value,
        "password": "agent123",
    },
    {
        "email": "agent2@renta.rw",
        "first_name": "Aline",
        "last_name": "Uwase",
        "phone": "+250788000002",
        "role": UserRole.AGENT.value,
        "password": "agent123",
    },
    {
        "email": "owner@renta.rw",
        "first_name": "Eric",
        "last_name": "Habimana",
        "phone": "+250788000003",
        "role": UserRole.OWNER.value,
        "password": "owner123",
    },
]


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed demo users, a tenant and the default commission rules"""
    db = SessionLocal()

    try:
        print("\nSeeding demo data...")

        for data in DEMO_USERS:
            if db.query(User).filter(User.email == data["email"]).first():
                continue
            fields = {k: v for k, v in data.items() if k != "password"}
            db.add(User(hashed_password=get_password_hash(data["password"]), **fields))
            print(f"✓ {data['role']} created ({data['email']} / {data['password']})")
        db.commit()

        owner = db.query(User).filter(User.email == "owner@renta.rw").first()
        if not db.query(Tenant).filter(Tenant.email == "tenant@renta.rw").first():
            db.add(Tenant(
                owner_id=owner.id,
                first_name="Claudine",
                last_name="Ingabire",
                email="tenant@renta.rw",
                phone="+250788000004",
            ))
            db.commit()
            print("✓ Demo tenant created")

        admin = db.query(User).filter(User.email == "admin@renta.rw").first()
        created = seed_default_rules(db, created_by=admin.id)
        print(f"✓ {created} default commission rule(s) created")

        print("\n✓ Database seeded successfully!")

    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    print("=" * 60)
    print("Renta Agent Commissions - Database Initialization")
    print("=" * 60)

    init_db()
    seed_data()

    print("\n" + "=" * 60)
    print("Initialization complete!")
    print("=" * 60)
    print("\nYou can now access:")
    print("  - API: http://localhost:8000")
    print("  - API Docs: http://localhost:8000/docs")
    print("\nRequests identify the caller with the X-User-Id header.")
    print("=" * 60)
