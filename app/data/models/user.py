from sqlalchemy import Column, Integer, String

from app.data.database import Base
from app.domain.roles import Role


class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default=Role.CUSTOMER.value)
