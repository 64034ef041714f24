from __future__ import annotations

import asyncio
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError

from dinematch.domain import Rating
from dinematch.domain.timeutil import ensure_utc, utcnow
from dinematch.infrastructure.stores.models import Base, RatingModel
from dinematch.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url


class SqlAlchemyRatingStore:
    """RatingRepository backed by SQLAlchemy. Ratings are insert-only."""

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

    async def get(self, rating_id: str) -> Optional[Rating]:
        return await asyncio.to_thread(self._get, rating_id)

    async def add(self, rating: Rating) -> Rating:
        return await asyncio.to_thread(self._add, rating)

    async def list_for_user(self, user_id: str, limit: int = 100) -> List[Rating]:
        return await asyncio.to_thread(self._list_for_user, user_id, limit)

    def _get(self, rating_id: str) -> Optional[Rating]:
        with self._provider.session() as session:
            row = session.get(RatingModel, rating_id)
            return row.to_domain() if row is not None else None

    def _add(self, rating: Rating) -> Rating:
        with self._provider.session() as session:
            row = RatingModel(
                rating_id=rating.rating_id,
                rated_user_id=rating.rated_user_id,
                rater_id=rating.rater_id,
                value=float(rating.value) if rating.value is not None else None,
                created_at=ensure_utc(rating.created_at) if rating.created_at else utcnow(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ValueError(f"rating {rating.rating_id} already exists") from e
            return row.to_domain()

    def _list_for_user(self, user_id: str, limit: int) -> List[Rating]:
        with self._provider.session() as session:
            stmt = (
                select(RatingModel)
                .where(RatingModel.rated_user_id == user_id)
                .order_by(desc(RatingModel.created_at))
                .limit(int(limit))
            )
            return [row.to_domain() for row in session.execute(stmt).scalars()]

    def close(self) -> None:
        try:
            self._provider.dispose()
        except Exception:
            pass
