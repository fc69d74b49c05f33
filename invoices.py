"""
PDF invoices

Invoices are rendered on a worker thread into INVOICE_DIR; the request that
asked for one polls the filesystem until the file is there. A failed render
ends the wait at once instead of running into the timeout.
"""

import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

import config
from errors import InvoiceGenerationError, InvoiceTimeoutError, NotFoundError, ValidationError
from schemas import InvoiceOrder

log = logging.getLogger("storefront.invoices")

executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="invoice")

LEFT, RIGHT = 50, 545
COLUMNS = ((LEFT, "Product"), (330, "Qty"), (420, "Unit price"), (RIGHT, "Total"))


def money(amount: float) -> str:
    return f"{amount:.2f} EUR"


def invoice_filename() -> str:
    return f"invoice-{int(time.time() * 1000)}.pdf"


def generate_invoice(order: InvoiceOrder, path: str, vat_rate: float = config.VAT_RATE) -> str:
    """Renders the order as a one-page invoice. The file only appears at `path` once complete."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp_path = f"{path}.part"
    width, height = A4
    pdf = canvas.Canvas(tmp_path, pagesize=A4)

    y = height - 70
    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawCentredString(width / 2, y, "PURCHASE INVOICE")
    y -= 12
    pdf.line(LEFT, y, RIGHT, y)

    y -= 30
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(LEFT, y, "Customer")
    pdf.setFont("Helvetica", 11)
    for line in (f"Name: {order.user.name}", f"Email: {order.user.email}",
                 f"Date: {datetime.now().strftime('%d/%m/%Y')}"):
        y -= 16
        pdf.drawString(LEFT, y, line)

    y -= 34
    pdf.setFont("Helvetica-Bold", 11)
    for x, label in COLUMNS:
        if x == LEFT:
            pdf.drawString(x, y, label)
        else:
            pdf.drawRightString(x, y, label)
    y -= 6
    pdf.line(LEFT, y, RIGHT, y)

    pdf.setFont("Helvetica", 11)
    for item in order.items:
        y -= 18
        if y < 120:
            pdf.showPage()
            pdf.setFont("Helvetica", 11)
            y = height - 70
        pdf.drawString(LEFT, y, item.product.title[:45])
        pdf.drawRightString(330, y, str(item.quantity))
        pdf.drawRightString(420, y, money(item.product.price))
        pdf.drawRightString(RIGHT, y, money(item.product.price * item.quantity))

    y -= 12
    pdf.line(LEFT, y, RIGHT, y)

    total = order.computed_total
    net = total / (1 + vat_rate)
    pdf.setFont("Helvetica-Bold", 11)
    for label, amount in (("Total excl. VAT", net), (f"VAT ({vat_rate:.0%})", total - net)):
        y -= 18
        pdf.drawRightString(RIGHT, y, f"{label}: {money(amount)}")
    y -= 22
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawRightString(RIGHT, y, f"TOTAL: {money(total)}")

    pdf.setFont("Helvetica", 9)
    pdf.drawCentredString(width / 2, 50, "Thank you for your purchase. This invoice was generated automatically.")
    pdf.save()

    os.replace(tmp_path, path)
    log.info("Invoice generated: %s", os.path.basename(path))
    return path


def submit_invoice(order: InvoiceOrder, directory: Optional[str] = None) -> Tuple[str, Future]:
    """Schedules rendering; returns the path the PDF will land at and the rendering future."""
    path = os.path.join(directory or config.INVOICE_DIR, invoice_filename())
    future: Future = executor.submit(generate_invoice, order, path)
    future.add_done_callback(_log_failure)
    return path, future


def _log_failure(future: Future) -> None:
    error = future.exception()
    if error is not None:
        log.error("Invoice generation failed: %s", error)


def wait_for_invoice(path: str, future: Optional[Future] = None, timeout: float = config.INVOICE_WAIT_TIMEOUT,
                     interval: float = config.INVOICE_POLL_INTERVAL) -> str:
    deadline = time.monotonic() + timeout
    while True:
        if os.path.isfile(path) and os.path.getsize(path) > 0:
            return path
        if future is not None and future.done() and future.exception() is not None:
            raise InvoiceGenerationError()
        if time.monotonic() >= deadline:
            log.warning("Timed out after %.1fs waiting for %s", timeout, os.path.basename(path))
            raise InvoiceTimeoutError()
        time.sleep(interval)


def resolve_invoice(filename: str, directory: Optional[str] = None) -> str:
    if not filename.endswith(".pdf"):
        raise ValidationError("Invalid file format")
    if os.path.basename(filename) != filename or filename.startswith("."):
        raise ValidationError("Invalid file name")
    path = os.path.join(directory or config.INVOICE_DIR, filename)
    if not os.path.isfile(path):
        raise NotFoundError("Invoice")
    return path
