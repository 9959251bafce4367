from sqlalchemy import BigInteger, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func
from database import Base

LAST_REFRESHED_AT_KEY = "last_refreshed_at"


class Country(Base):
    __tablename__ = 'countries'

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # uniqueness is case-insensitive; lookups always go through lower(name)
    name = Column(String(255), unique=True, index=True, nullable=False)
    capital = Column(String(255), nullable=True)
    region = Column(String(100), index=True, nullable=True)
    population = Column(BigInteger, nullable=True)
    currency_code = Column(String(10), index=True, nullable=True)
    exchange_rate = Column(Float, nullable=True)
    estimated_gdp = Column(Float, nullable=True)
    flag_url = Column(String(512), nullable=True)
    last_refreshed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class GlobalSetting(Base):
    __tablename__ = 'global_settings'

    key = Column(String(100), primary_key=True)
    value = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
