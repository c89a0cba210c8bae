from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Config(Base):
    __tablename__ = "config"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(String, nullable=False)
    type = Column(String, nullable=False)  # "str", "int"

    KEY_STORE_NAME = "store_name"
    KEY_LOGO_URL = "logo_url"
    KEY_PRINTER_DEVICE = "printer_device"
    KEY_ENCODING = "encoding"
    KEY_FOOTER = "footer"          # newline separated lines
    KEY_CHUNK_SIZE = "chunk_size"

    KEYS = (
        KEY_STORE_NAME,
        KEY_LOGO_URL,
        KEY_PRINTER_DEVICE,
        KEY_ENCODING,
        KEY_FOOTER,
        KEY_CHUNK_SIZE,
    )

    @staticmethod
    def set(db, key, value):
        if isinstance(value, int):
            typ = "int"
        else:
            typ = "str"
        val_str = str(value)

        c = db.query(Config).filter_by(key=key).first()
        if c:
            c.value = val_str
            c.type = typ
        else:
            c = Config(key=key, value=val_str, type=typ)
            db.add(c)
        db.commit()

    @staticmethod
    def get(db, key, default=None):
        c = db.query(Config).filter_by(key=key).first()
        if not c:
            return default

        if c.type == "int":
            return int(c.value)
        return c.value

    @staticmethod
    def delete(db, key):
        deleted = db.query(Config).filter_by(key=key).delete()
        db.commit()
        return deleted > 0

    @staticmethod
    def all(db):
        return db.query(Config).order_by(Config.key).all()


class PrintRecord(Base):
    """Audit trail of buffers handed to the printer. Nothing is ever re-sent from here."""
    __tablename__ = "print_records"

    KIND_RECEIPT = "receipt"
    KIND_BARCODE = "barcode"

    id = Column(Integer, primary_key=True)
    kind = Column(String(20), nullable=False)
    reference = Column(String(255))        # order id or barcode payload
    length = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)  # "OK", "FAILED"
    created = Column(DateTime, default=datetime.now)

    @staticmethod
    def add(db, kind, reference, length, status):
        rec = PrintRecord(kind=kind, reference=reference, length=length, status=status)
        db.add(rec)
        db.commit()
        return rec

    @staticmethod
    def latest(db, limit=50):
        return (
            db.query(PrintRecord)
            .order_by(PrintRecord.id.desc())
            .limit(limit)
            .all()
        )
