from pos_receipt.config import DEFAULT_DEVICE, ReceiptConfig, load_printer_settings, load_receipt_config
from pos_receipt.models import Base, Config, PrintRecord

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


def make_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    return Session()


def test_defaults_without_stored_values():
    session = make_session()
    assert load_receipt_config(session) == ReceiptConfig()
    settings = load_printer_settings(session)
    assert settings.device == DEFAULT_DEVICE
    assert settings.chunk_size is None


def test_stored_values_overlay_defaults():
    session = make_session()
    Config.set(session, Config.KEY_STORE_NAME, "FOODMOOD POS")
    Config.set(session, Config.KEY_FOOTER, "Thanks!\nSee you")
    Config.set(session, Config.KEY_ENCODING, "cp437")
    Config.set(session, Config.KEY_LOGO_URL, "/srv/logo.png")
    Config.set(session, Config.KEY_PRINTER_DEVICE, "/dev/usb/lp1")
    Config.set(session, Config.KEY_CHUNK_SIZE, 20)

    config = load_receipt_config(session)
    assert config.store_name == "FOODMOOD POS"
    assert config.footer == ("Thanks!", "See you")
    assert config.encoding == "cp437"
    assert config.logo_url == "/srv/logo.png"
    assert config.timestamp_format == ReceiptConfig().timestamp_format

    settings = load_printer_settings(session)
    assert settings.device == "/dev/usb/lp1"
    assert settings.chunk_size == 20


def test_config_set_get_delete():
    session = make_session()
    Config.set(session, Config.KEY_CHUNK_SIZE, 20)
    Config.set(session, Config.KEY_CHUNK_SIZE, 40)
    assert Config.get(session, Config.KEY_CHUNK_SIZE) == 40
    assert [c.key for c in Config.all(session)] == [Config.KEY_CHUNK_SIZE]

    assert Config.delete(session, Config.KEY_CHUNK_SIZE)
    assert Config.get(session, Config.KEY_CHUNK_SIZE, "none") == "none"
    assert not Config.delete(session, Config.KEY_CHUNK_SIZE)


def test_empty_footer_clears_lines():
    session = make_session()
    Config.set(session, Config.KEY_FOOTER, "")
    assert load_receipt_config(session).footer == ()


def test_print_records_latest_first():
    session = make_session()
    PrintRecord.add(session, PrintRecord.KIND_RECEIPT, "A-1", 100, "OK")
    PrintRecord.add(session, PrintRecord.KIND_BARCODE, "590123412345", 30, "FAILED")

    records = PrintRecord.latest(session)
    assert [r.reference for r in records] == ["590123412345", "A-1"]
    assert records[0].created is not None
    assert len(PrintRecord.latest(session, limit=1)) == 1


def test_text_settings_stored_as_int():
    session = make_session()
    Config.set(session, Config.KEY_STORE_NAME, 7)
    Config.set(session, Config.KEY_FOOTER, 2024)
    Config.set(session, Config.KEY_PRINTER_DEVICE, 0)

    config = load_receipt_config(session)
    assert config.store_name == "7"
    assert config.footer == ("2024",)
    assert load_printer_settings(session).device == "0"
