import os

from sqlalchemy import select

from main import create_app
from powerup.extensions import db
from powerup.models import Base, User, UserRole
from powerup.routes.auth import hash_password

app = create_app()

with app.app_context():
    Base.metadata.create_all(bind=db.engine)
    print("Schema created")

    admin_email = os.environ.get("ADMIN_EMAIL")
    admin_password = os.environ.get("ADMIN_PASSWORD")
    if admin_email and admin_password:
        existing = db.session.scalar(
            select(User).where(User.email == admin_email, User.not_deleted())
        )
        if existing:
            print(f"Admin {admin_email} already exists (id={existing.id})")
        else:
            admin = User(
                name=os.environ.get("ADMIN_NAME", "Administrator"),
                email=admin_email,
                password_hash=hash_password(admin_password),
                role=UserRole.Admin,
                is_admin=True,
            )
            db.session.add(admin)
            db.session.commit()
            print(f"Created admin {admin_email} (id={admin.id})")
