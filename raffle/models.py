from sqlalchemy import Boolean, Column, DateTime, Integer, String

from .database import Base


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String, unique=True, index=True, nullable=False)
    code = Column(String, nullable=True)  # payload that triggered registration

    received_at = Column(DateTime, nullable=False, index=True)  # naive UTC

    is_winner = Column(Boolean, nullable=False, default=False)
    channel_joined = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Participant id={self.id} phone={self.phone} winner={self.is_winner}>"
