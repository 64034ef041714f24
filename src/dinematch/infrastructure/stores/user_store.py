from __future__ import annotations

import asyncio
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update

from dinematch.domain import User
from dinematch.domain.timeutil import ensure_utc
from dinematch.infrastructure.stores.models import Base, UserModel
from dinematch.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url


class SqlAlchemyUserStore:
    """
    UserRepository backed by SQLAlchemy.

    Notes:
    - Blocking session work runs in a worker thread (asyncio.to_thread).
    - update_trust is a single UPDATE ... WHERE version = :expected, so
      concurrent ratings for one user cannot overwrite each other.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        provider: Optional[SessionProvider] = None,
        auto_create_schema: bool = True,
    ):
        self.db_url = db_url or get_db_url()
        self._provider = provider or SessionProvider(self.db_url)
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    # ---- UserRepository ----

    async def get(self, user_id: str) -> Optional[User]:
        return await asyncio.to_thread(self._get, user_id)

    async def list_active(self) -> List[User]:
        return await asyncio.to_thread(self._list_active)

    async def update_trust(
        self,
        user_id: str,
        *,
        expected_version: int,
        trust_score: float,
        rating_count: int,
        last_rated_at: datetime,
    ) -> bool:
        return await asyncio.to_thread(
            self._update_trust, user_id, expected_version, trust_score, rating_count, last_rated_at
        )

    # ---- profile writes (outside the core) ----

    async def save(self, user: User) -> User:
        return await asyncio.to_thread(self._save, user)

    # ---- sync implementations ----

    def _get(self, user_id: str) -> Optional[User]:
        with self._provider.session() as session:
            row = session.get(UserModel, user_id)
            return row.to_domain() if row is not None else None

    def _list_active(self) -> List[User]:
        with self._provider.session() as session:
            stmt = select(UserModel).where(UserModel.is_active.is_(True)).order_by(UserModel.user_id)
            return [row.to_domain() for row in session.execute(stmt).scalars()]

    def _update_trust(
        self,
        user_id: str,
        expected_version: int,
        trust_score: float,
        rating_count: int,
        last_rated_at: datetime,
    ) -> bool:
        with self._provider.session() as session:
            result = session.execute(
                update(UserModel)
                .where(UserModel.user_id == user_id, UserModel.version == expected_version)
                .values(
                    trust_score=float(trust_score),
                    rating_count=int(rating_count),
                    last_rated_at=ensure_utc(last_rated_at),
                    version=UserModel.version + 1,
                )
            )
            session.commit()
            return result.rowcount == 1

    def _save(self, user: User) -> User:
        with self._provider.session() as session:
            row = session.get(UserModel, user.user_id)
            if row is None:
                row = UserModel(user_id=user.user_id)
                session.add(row)
            row.apply(user)
            session.commit()
            return row.to_domain()

    def close(self) -> None:
        try:
            self._provider.dispose()
        except Exception:
            pass
