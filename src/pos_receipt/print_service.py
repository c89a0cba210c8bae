#!/usr/bin/env python3

from pos_receipt.barcode import BarcodeEncoder, BarcodeSpec
from pos_receipt.config import ReceiptConfig, load_printer_settings, load_receipt_config
from pos_receipt.db import SessionLocal, init_db
from pos_receipt.errors import BarcodeValidationError
from pos_receipt.escpos import to_hex_string
from pos_receipt.models import PrintRecord
from pos_receipt.printer import DevicePrinter
from pos_receipt.receipt import ReceiptComposer, ReceiptDocument

from contextlib import asynccontextmanager
from pydantic import BaseModel
from typing import Optional

import asyncio
import uvicorn
from fastapi import Depends, FastAPI, HTTPException


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Receipt Printer", lifespan=lifespan)


class BarcodeRequest(BaseModel):
    payload: str
    spec: BarcodeSpec = BarcodeSpec()


# -----------------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------------

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_receipt_config(db=Depends(get_db)) -> ReceiptConfig:
    return load_receipt_config(db)


def get_printer(db=Depends(get_db)):
    settings = load_printer_settings(db)
    return DevicePrinter(settings.device, settings.chunk_size)


def get_composer(config: ReceiptConfig = Depends(get_receipt_config)) -> ReceiptComposer:
    return ReceiptComposer(config=config)


def get_barcode_encoder() -> BarcodeEncoder:
    return BarcodeEncoder()


def send_and_record(printer, db, kind: str, reference: str, data: bytes) -> str:
    """Blocking device write plus audit row."""
    status = "OK" if printer.send(data) else "FAILED"
    PrintRecord.add(db, kind, reference, len(data), status)
    return status


def encode_barcode(encoder: BarcodeEncoder, req: BarcodeRequest) -> bytes:
    try:
        return encoder.encode(req.payload, req.spec)
    except BarcodeValidationError as ex:
        raise HTTPException(status_code=422, detail=str(ex))


# -----------------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------------

@app.post("/receipt")
async def print_receipt(doc: ReceiptDocument, logo_url: Optional[str] = None,
                        composer: ReceiptComposer = Depends(get_composer),
                        printer=Depends(get_printer), db=Depends(get_db)):
    data = await composer.compose(doc, logo_url)
    status = await asyncio.to_thread(
        send_and_record, printer, db, PrintRecord.KIND_RECEIPT, doc.order_id, data)
    return {"status": status, "bytes": len(data)}


@app.post("/receipt/hex")
async def receipt_hex(doc: ReceiptDocument, logo_url: Optional[str] = None,
                      composer: ReceiptComposer = Depends(get_composer)):
    data = await composer.compose(doc, logo_url)
    return {"length": len(data), "hex": to_hex_string(data)}


@app.post("/barcode")
def print_barcode(req: BarcodeRequest,
                  encoder: BarcodeEncoder = Depends(get_barcode_encoder),
                  printer=Depends(get_printer), db=Depends(get_db)):
    data = encode_barcode(encoder, req)
    status = send_and_record(printer, db, PrintRecord.KIND_BARCODE, req.payload, data)
    return {"status": status, "bytes": len(data)}


@app.post("/barcode/hex")
def barcode_hex(req: BarcodeRequest, encoder: BarcodeEncoder = Depends(get_barcode_encoder)):
    data = encode_barcode(encoder, req)
    return {"length": len(data), "hex": to_hex_string(data)}


@app.get("/history")
def history(limit: int = 50, db=Depends(get_db)):
    return [
        {
            "kind": r.kind,
            "reference": r.reference,
            "bytes": r.length,
            "status": r.status,
            "created": r.created.isoformat() if r.created else None,
        }
        for r in PrintRecord.latest(db, limit)
    ]


def main():
    print("Listening for print jobs on port 12346...")
    uvicorn.run("pos_receipt.print_service:app", host="0.0.0.0", port=12346, reload=False)


if __name__ == "__main__":
    main()
