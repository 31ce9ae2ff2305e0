# backend/customer_service/app/models.py

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func  # For auto-populating timestamps

from .db import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    firstname = Column(String(255), nullable=False)
    lastname = Column(String(255), nullable=False)
    age = Column(Integer, nullable=True)
    address = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        """
        String representation of the Customer object, useful for debugging.
        """
        return f"<Customer(id={self.id}, name='{self.firstname} {self.lastname}', age={self.age})>"
