from pos_receipt.config import ReceiptConfig
from pos_receipt.errors import ImageLoadError
from pos_receipt.printer import CommandStream
from pos_receipt.raster import RasterEncoder, mode_from_name

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ReceiptLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal     # computed by the caller, printed as is


class Discount(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    code: Optional[str] = None


class ReceiptDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    timestamp: datetime
    items: List[ReceiptLineItem]
    subtotal: Decimal
    discount: Optional[Discount] = None
    total: Decimal
    amount_paid: Decimal
    change: Decimal
    cashier_name: Optional[str] = None
    store_name: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("order_id", mode="before")
    @classmethod
    def _order_id_as_text(cls, v):
        return str(v) if isinstance(v, int) else v


# ------------------------------------------------------------
# Fixed-width helpers
# ------------------------------------------------------------
def pad_right(s: str, n: int) -> str:
    """Left-justify `s` in exactly n columns, cutting it if it is longer."""
    return s[:n] if len(s) >= n else s + ' ' * (n - len(s))


def pad_left(s: str, n: int) -> str:
    """Right-justify `s` in exactly n columns, cutting it if it is longer."""
    return s[:n] if len(s) >= n else ' ' * (n - len(s)) + s


def money(value) -> str:
    return f"{Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP):.2f}"


class ReceiptComposer:
    ITEM_HEADER = "QTY  ITEM                AMOUNT"
    QTY_WIDTH = 2
    GUTTER = "  "
    NAME_WIDTH = 18
    AMOUNT_WIDTH = 8
    LABEL_WIDTH = 22
    VALUE_WIDTH = 10

    def __init__(self, raster: Optional[RasterEncoder] = None, config: ReceiptConfig = ReceiptConfig()):
        self.raster = raster or RasterEncoder()
        self.config = config

    # ------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------
    async def compose(self, doc: ReceiptDocument, logo_url: Optional[str] = None) -> bytes:
        stream = await self.build(doc, logo_url)
        return stream.flatten()

    async def build(self, doc: ReceiptDocument, logo_url: Optional[str] = None) -> CommandStream:
        url = logo_url or doc.logo_url or self.config.logo_url
        logo = await self.load_logo(url) if url else None
        return self.layout(doc, logo)

    async def load_logo(self, url: str) -> Optional[bytes]:
        """Raster command for the logo, None when it cannot be loaded."""
        try:
            return await self.raster.encode_url(
                url,
                self.config.logo_max_width_dots,
                mode_from_name(self.config.logo_mode),
            )
        except ImageLoadError as e:
            logger.warning("Printing receipt without logo: %s", e)
            return None

    # ------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------
    def format_item(self, item: ReceiptLineItem) -> str:
        if len(item.name) > self.NAME_WIDTH:
            logger.warning("Item name truncated to %d columns: %r", self.NAME_WIDTH, item.name)
        qty = pad_left(str(item.quantity), self.QTY_WIDTH)
        name = pad_right(item.name, self.NAME_WIDTH)
        amount = pad_left(money(item.line_total), self.AMOUNT_WIDTH)
        return f"{qty}{self.GUTTER}{name}{amount}"

    def format_total(self, label: str, value: str) -> str:
        return pad_left(label, self.LABEL_WIDTH) + pad_left(value, self.VALUE_WIDTH)

    def format_timestamp(self, ts: datetime) -> str:
        return ts.strftime(self.config.timestamp_format)

    def layout(self, doc: ReceiptDocument, logo: Optional[bytes] = None) -> CommandStream:
        p = CommandStream(self.config.encoding)
        divider = '-' * self.config.divider_width

        p.initialize()

        if logo:
            p.align("center")
            p.raw(logo)
            p.text("\n")

        store_name = doc.store_name or self.config.store_name
        if store_name:
            p.align("center")
            p.double_size()
            p.line(store_name)
            p.normal_size()
            p.line()

        # Order details
        p.align("left")
        p.line(f"Order #: {doc.order_id}")
        p.line(f"Date: {self.format_timestamp(doc.timestamp)}")
        if doc.cashier_name:
            p.line(f"Cashier: {doc.cashier_name}")
        p.line()

        # Items
        p.line(self.ITEM_HEADER)
        p.line(divider)
        for item in doc.items:
            p.line(self.format_item(item))
        p.line(divider)

        # Totals
        p.line(self.format_total("Subtotal:", money(doc.subtotal)))
        if doc.discount and doc.discount.amount > 0:
            p.line(self.format_total("Discount:", "-" + money(doc.discount.amount)))
            if doc.discount.code:
                p.line(self.format_total("Code:", doc.discount.code))
        p.bold_on()
        p.line(self.format_total("TOTAL:", money(doc.total)))
        p.bold_off()
        p.line(self.format_total("Payment:", money(doc.amount_paid)))
        p.line(self.format_total("Change:", money(doc.change)))
        p.line()

        # Footer
        p.align("center")
        for footer_line in self.config.footer:
            p.line(footer_line)
        p.feed(3)
        p.cut()

        return p
