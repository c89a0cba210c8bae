from pos_receipt.models import Base

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
import os


DB_PATH = os.environ.get("POS_RECEIPT_DB", "pos.db")
ENGINE = create_engine(f"sqlite:///{DB_PATH}", future=True, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(bind=ENGINE, autoflush=False, autocommit=False, future=True)


def init_db(engine=ENGINE):
    Base.metadata.create_all(engine)
