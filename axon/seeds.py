import argparse
import logging
from typing import Dict, List

from faker import Faker
from sqlalchemy import select
from sqlalchemy.orm import Session

from .database import Base, engine, session_scope
from .models import Collection, CollectionRequest, Environment, User
from .security import hash_password

logger = logging.getLogger(__name__)

fake = Faker()
Faker.seed(1234)

DEFAULT_USERS = (
    ("admin", "admin@xhtech.com", "admin123"),
    ("developer", "dev@xhtech.com", "dev123"),
    ("tester", "test@xhtech.com", "test123"),
)


def ensure_default_users(session: Session) -> Dict[str, User]:
    """Create the built-in accounts that do not exist yet, keyed by username."""
    existing = {
        user.username: user
        for user in session.scalars(
            select(User).where(User.username.in_([name for name, _, _ in DEFAULT_USERS]))
        ).all()
    }
    for username, email, password in DEFAULT_USERS:
        if username in existing:
            continue
        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            avatar=f"https://api.dicebear.com/7.x/avataaars/svg?seed={username}",
        )
        session.add(user)
        existing[username] = user
        logger.info("Default user created: %s", username)
    session.flush()
    return existing


def seed_workspace(session: Session, user: User, collections: int) -> List[Collection]:
    """Give ``user`` a demo environment and ``collections`` demo collections.

    Idempotent: collections are identified by their deterministic name.
    """
    if session.scalar(select(Environment).where(Environment.user_id == user.id)) is None:
        session.add(
            Environment(
                user_id=user.id,
                name="Local",
                variables={"baseUrl": "http://localhost:3001", "token": fake.sha1()},
                is_active=True,
            )
        )

    created = []
    for index in range(collections):
        name = f"Demo collection {index + 1}"
        exists = session.scalar(
            select(Collection).where(Collection.user_id == user.id, Collection.name == name)
        )
        if exists:
            continue

        collection = Collection(
            user_id=user.id, name=name, description=fake.sentence(), order_index=index
        )
        session.add(collection)
        session.flush()  # assign collection.id

        resource = fake.word()
        for order, method in enumerate(("GET", "POST")):
            session.add(
                CollectionRequest(
                    user_id=user.id,
                    collection_id=collection.id,
                    name=f"{method} {resource}",
                    method=method,
                    url=f"{{{{baseUrl}}}}/api/{resource}",
                    headers={"Accept": "application/json"},
                    query_params={},
                    body=None if method == "GET" else f'{{"name": "{fake.first_name()}"}}',
                    auth={"type": "bearer", "token": "{{token}}"},
                    order_index=order,
                )
            )
        created.append(collection)
    session.flush()
    return created


def seed(session: Session, collections_per_user: int) -> None:
    users = ensure_default_users(session)
    for user in users.values():
        seed_workspace(session, user, collections_per_user)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the schema and seed demo data.")
    parser.add_argument(
        "--collections",
        type=int,
        default=2,
        help="Demo collections per default user (default: 2).",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        seed(session, collections_per_user=args.collections)
    print("Seeding complete.")


if __name__ == "__main__":
    main()
