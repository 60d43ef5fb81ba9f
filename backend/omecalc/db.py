# backend/omecalc/db.py
from sqlalchemy import create_engine, Column, Integer, String, JSON, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker
import datetime

from omecalc.config import DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()

class CalculationAudit(Base):
    __tablename__ = "calculation_audit"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String, index=True)  # aggregate, rotate, prn, quick_convert, scheduled, plan
    request = Column(JSON)
    status = Column(String)
    result_text = Column(String)
    trace = Column(JSON)  # narrated calculation steps, verbatim
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

Base.metadata.create_all(bind=engine)
