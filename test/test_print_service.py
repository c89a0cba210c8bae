from pos_receipt import escpos
from pos_receipt.config import ReceiptConfig
from pos_receipt.models import Base, PrintRecord
from pos_receipt.print_service import app, get_db, get_printer, get_receipt_config

import asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


class MockPrinter:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []
        self.on_loop = None

    def send(self, data):
        self.sent.append(data)
        try:
            asyncio.get_running_loop()
            self.on_loop = True
        except RuntimeError:
            self.on_loop = False
        return self.ok


ORDER = {
    "order_id": "A-1001",
    "timestamp": "2026-10-16T12:30:00",
    "items": [{"name": "Latte", "quantity": 2, "unit_price": 4.5, "line_total": 9}],
    "subtotal": 9,
    "total": 9,
    "amount_paid": 10,
    "change": 1,
}


def make_client(printer):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    app.dependency_overrides[get_db] = lambda: session
    app.dependency_overrides[get_printer] = lambda: printer
    app.dependency_overrides[get_receipt_config] = lambda: ReceiptConfig(store_name="FOODMOOD POS")
    return TestClient(app), session


def teardown_function():
    app.dependency_overrides.clear()


def test_print_receipt():
    printer = MockPrinter()
    client, session = make_client(printer)

    response = client.post("/receipt", json=ORDER)
    assert response.status_code == 200
    assert response.json() == {"status": "OK", "bytes": len(printer.sent[0])}

    data = printer.sent[0]
    assert data.startswith(escpos.INIT)
    assert b"FOODMOOD POS\n" in data
    assert b" 2  Latte                 9.00\n" in data
    assert data.endswith(escpos.CUT_FULL)

    record = PrintRecord.latest(session)[0]
    assert (record.kind, record.reference, record.status) == ("receipt", "A-1001", "OK")


def test_print_receipt_transport_failure():
    client, session = make_client(MockPrinter(ok=False))
    response = client.post("/receipt", json=ORDER)
    assert response.status_code == 200
    assert response.json()["status"] == "FAILED"
    assert PrintRecord.latest(session)[0].status == "FAILED"


def test_receipt_hex():
    printer = MockPrinter()
    client, _ = make_client(printer)
    response = client.post("/receipt/hex", json=ORDER)
    body = response.json()
    assert body["hex"].startswith("1B 40")
    assert body["hex"].endswith("1D 56 00")
    assert len(body["hex"].split(" ")) == body["length"]
    assert printer.sent == []


def test_invalid_order_rejected():
    client, _ = make_client(MockPrinter())
    response = client.post("/receipt", json={"order_id": "A-1"})
    assert response.status_code == 422


def test_print_barcode():
    printer = MockPrinter()
    client, session = make_client(printer)
    response = client.post("/barcode", json={"payload": "590123412345", "spec": {"symbology": "EAN13"}})
    assert response.status_code == 200
    assert response.json()["status"] == "OK"
    assert printer.sent[0].endswith(b"\x1d\x6b\x02590123412345\x00\n\n")
    assert PrintRecord.latest(session)[0].kind == "barcode"


def test_barcode_validation_error():
    printer = MockPrinter()
    client, session = make_client(printer)
    response = client.post("/barcode", json={"payload": "abc", "spec": {"symbology": "CODE39"}})
    assert response.status_code == 422
    assert "CODE39" in response.json()["detail"]
    assert printer.sent == []
    assert PrintRecord.latest(session) == []


def test_barcode_hex():
    client, _ = make_client(MockPrinter())
    response = client.post("/barcode/hex", json={"payload": "1", "spec": {"line_feeds": 0}})
    assert response.json() == {
        "length": 19,
        "hex": "1B 40 1D 68 A2 1D 77 03 1D 48 02 1D 66 00 1D 6B 49 01 31",
    }


def test_history():
    client, _ = make_client(MockPrinter())
    client.post("/barcode", json={"payload": "ORDER-42"})
    client.post("/receipt", json=ORDER)

    history = client.get("/history").json()
    assert [h["kind"] for h in history] == ["receipt", "barcode"]
    assert history[1]["reference"] == "ORDER-42"
    assert history[1]["bytes"] == 28


def test_device_write_runs_off_the_event_loop():
    printer = MockPrinter()
    client, session = make_client(printer)

    assert client.post("/receipt", json=ORDER).json()["status"] == "OK"
    assert printer.on_loop is False
    assert PrintRecord.latest(session)[0].reference == "A-1001"

    assert client.post("/barcode", json={"payload": "ORDER-42"}).status_code == 200
    assert printer.on_loop is False
