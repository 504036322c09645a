"""Seed the database with demo users, consultations and payment accounts."""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from buildlink.database import SessionLocal, engine, Base
import buildlink.models  # noqa: F401

from buildlink.models.user import User, PaymentAccount
from buildlink.models.consultation import Consultation


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if db.query(User).count() > 0:
            print("Database already seeded. Skipping.")
            return

        users = [
            User(email="admin@buildlink.test", name="Platform Admin", role="admin"),
            User(email="client@buildlink.test", name="Ada Client", phone="+2348000000001", role="client"),
            User(email="client2@buildlink.test", name="Tunde Client", phone="+2348000000002", role="client"),
            User(email="company@buildlink.test", name="Solid Build Ltd", phone="+2348000000010", role="company"),
            User(email="company2@buildlink.test", name="Prime Works Ltd", phone="+2348000000011", role="company"),
        ]
        db.add_all(users)
        db.flush()
        admin, client, client2, company, company2 = users

        db.add_all([
            PaymentAccount(user_id=client.user_id, account_name="Ada Client", account_number="0123456789",
                           bank_code="058", bank_name="GTBank", is_default=True),
            PaymentAccount(user_id=company.user_id, account_name="Solid Build Ltd", account_number="1234509876",
                           bank_code="044", bank_name="Access Bank", is_default=True),
            PaymentAccount(user_id=company2.user_id, account_name="Prime Works Ltd", account_number="5678901234",
                           bank_code="033", bank_name="UBA", is_default=True),
        ])

        # 프로젝트로 전환 가능한 상담 (completed + paid)
        db.add_all([
            Consultation(client_id=client.user_id, company_id=company.user_id, status="completed",
                         payment_status="paid", notes="Duplex, 4 bedrooms, Lekki"),
            Consultation(client_id=client2.user_id, company_id=company2.user_id, status="completed",
                         payment_status="paid", notes="Warehouse extension"),
            Consultation(client_id=client.user_id, company_id=company2.user_id, status="scheduled",
                         payment_status="unpaid", notes="Fence and gatehouse"),
        ])

        db.commit()
        print("Seed data inserted successfully.")
        print("Login emails: " + ", ".join(u.email for u in users))
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
