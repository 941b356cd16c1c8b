"""
services/watch_store.py

Read/write contract over users + cart_flights.

Every method opens and closes its own session, so one store instance can be
shared by the request handlers and by the price watch worker threads.
Rows leave this module as WatchSnapshot objects, never as live ORM rows.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from models import CartFlight, User
from schemas.cart import WatchSnapshot

logger = logging.getLogger(__name__)


def _snapshot(row: CartFlight) -> WatchSnapshot:
    return WatchSnapshot(
        id=row.id,
        user_id=row.user_id,
        origin=row.origin,
        destination=row.destination,
        departure_date=row.departure_date,
        return_date=row.return_date,
        adults=row.adults,
        currency_code=row.currency_code,
        airline=row.airline,
        flight_number=row.flight_number,
        price=Decimal(str(row.price)),
        created_at=row.created_at,
    )


class WatchStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    # =====================================================================
    # SECTION: PRICE WATCH CONTRACT
    # =====================================================================

    def list_eligible_watches(self, today: date) -> List[Tuple[WatchSnapshot, str]]:
        """All watches departing today or later, paired with the owner's email, in insertion order."""
        db = self.session_factory()
        try:
            rows = db.execute(
                select(CartFlight, User.email)
                .join(User, CartFlight.user_id == User.id)
                .where(CartFlight.departure_date >= today)
                .order_by(CartFlight.id.asc())
            ).all()
            return [(_snapshot(flight), email) for flight, email in rows]
        finally:
            db.close()

    def update_watch_price(self, watch_id: int, new_price: Decimal) -> bool:
        """
        Single-row update keyed by primary id.
        Returns False (no-op) when the row was deleted in the meantime.
        """
        db = self.session_factory()
        try:
            result = db.execute(
                update(CartFlight)
                .where(CartFlight.id == watch_id)
                .values(price=new_price)
            )
            db.commit()
            return result.rowcount == 1
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # =====================================================================
    # SECTION: USERS
    # =====================================================================

    def find_or_create_user(self, email: str, phone: Optional[str] = None) -> Tuple[int, bool]:
        """Returns (user_id, created). An existing user only gets a phone update."""
        email_norm = email.strip().lower()
        db = self.session_factory()
        try:
            user = db.execute(select(User).where(User.email == email_norm)).scalar_one_or_none()
            if user is not None:
                if phone and user.phone != phone:
                    user.phone = phone
                    db.commit()
                return user.id, False

            user = User(email=email_norm, phone=phone or None)
            db.add(user)
            db.commit()
            db.refresh(user)
            return user.id, True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_user_email(self, user_id: int) -> Optional[str]:
        db = self.session_factory()
        try:
            return db.execute(select(User.email).where(User.id == user_id)).scalar_one_or_none()
        finally:
            db.close()

    # =====================================================================
    # SECTION: CART
    # =====================================================================

    def add_watch(
        self,
        user_id: int,
        origin: str,
        destination: str,
        departure_date: date,
        adults: int,
        currency_code: str,
        airline: Optional[str],
        flight_number: Optional[str],
        price: Decimal,
        return_date: Optional[date] = None,
    ) -> WatchSnapshot:
        db = self.session_factory()
        try:
            row = CartFlight(
                user_id=user_id,
                origin=origin,
                destination=destination,
                departure_date=departure_date,
                return_date=return_date,
                adults=adults,
                currency_code=currency_code,
                airline=airline,
                flight_number=flight_number,
                price=price,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _snapshot(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_watches_for_user(self, user_id: int) -> List[WatchSnapshot]:
        db = self.session_factory()
        try:
            rows = db.execute(
                select(CartFlight)
                .where(CartFlight.user_id == user_id)
                .order_by(CartFlight.id.asc())
            ).scalars().all()
            return [_snapshot(r) for r in rows]
        finally:
            db.close()

    def clear_watches_for_user(self, user_id: int) -> int:
        db = self.session_factory()
        try:
            result = db.execute(delete(CartFlight).where(CartFlight.user_id == user_id))
            db.commit()
            return result.rowcount or 0
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
