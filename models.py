# =======================================
# SECTION: IMPORTS AND BASE
# =======================================

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Numeric,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from db import Base


# =======================================
# SECTION: USER MODELS
# =======================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    cart_flights = relationship(
        "CartFlight",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# =======================================
# SECTION: CART / PRICE WATCH MODELS
# =======================================

class CartFlight(Base):
    __tablename__ = "cart_flights"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 3-letter IATA codes, validated before insert
    origin = Column(String(3), nullable=False)
    destination = Column(String(3), nullable=False)

    departure_date = Column(Date, nullable=False, index=True)
    return_date = Column(Date, nullable=True)

    adults = Column(Integer, nullable=False, default=1)
    currency_code = Column(String(3), nullable=False, default="INR")

    airline = Column(String(8), nullable=True)
    flight_number = Column(String(16), nullable=True)

    # Last observed TOTAL price for the whole party, in currency_code
    price = Column(Numeric(12, 2), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="cart_flights")
