# airodental/scripts/seed.py
"""
Create the default staff users. Safe to run more than once: users whose
email already exists are left as they are.

    python -m airodental.scripts.seed
"""
from airodental.database import SessionLocal, init_db
from airodental import models

DEFAULT_USERS = [
    ("Admin User", "admin@airodental.com", models.Role.ADMIN),
    ("Dr. Smith", "dentist@airodental.com", models.Role.DENTIST),
    ("Jane Doe", "receptionist@airodental.com", models.Role.RECEPTIONIST),
    ("Sarah Manager", "manager@airodental.com", models.Role.OFFICE_MANAGER),
    ("Mike Billington", "billing@airodental.com", models.Role.BILLING_SPECIALIST),
]


def seed(db) -> list[models.User]:
    created = []
    for name, email, role in DEFAULT_USERS:
        if db.query(models.User).filter(models.User.email == email).first():
            continue
        user = models.User(name=name, email=email, role=role)
        db.add(user)
        created.append(user)
    db.commit()
    return created


if __name__ == "__main__":
    init_db()
    db = SessionLocal()
    try:
        created = seed(db)
    finally:
        db.close()
    if not created:
        print("Nothing to do, default users already exist.")
    for u in created:
        print(f" - {u.role.value:<20} {u.name} <{u.email}>")
