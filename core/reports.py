import io

from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

DEFAULT_STORE_NAME = 'DukaBook Store'


def generate_receipt_pdf(sale):
    """Generate PDF receipt for a sale"""
    buffer = io.BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=(3 * inch, 8 * inch),  # Thermal receipt width
        rightMargin=0.2 * inch,
        leftMargin=0.2 * inch,
        topMargin=0.25 * inch,
        bottomMargin=0.25 * inch
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'Title',
        parent=styles['Heading1'],
        fontSize=14,
        alignment=TA_CENTER,
        spaceAfter=8
    )
    normal_style = ParagraphStyle(
        'Normal',
        parent=styles['Normal'],
        fontSize=8
    )
    bold_style = ParagraphStyle(
        'Bold',
        parent=styles['Normal'],
        fontSize=9,
        fontName='Helvetica-Bold'
    )
    center_style = ParagraphStyle(
        'Center',
        parent=styles['Normal'],
        alignment=TA_CENTER,
        fontSize=7
    )

    store = sale.store
    story = []

    story.append(Paragraph((store.name if store else '') or DEFAULT_STORE_NAME, title_style))
    if store and store.location:
        story.append(Paragraph(store.location, center_style))
    if store and store.phone:
        story.append(Paragraph(f"Tel: {store.phone}", center_style))
    story.append(Spacer(1, 0.1 * inch))

    local_time = timezone.localtime(sale.created_at)
    story.append(Paragraph(f"RECEIPT: {sale.invoice_number}", bold_style))
    story.append(Paragraph(f"Date: {local_time.strftime('%d/%m/%Y %H:%M')}", normal_style))
    if sale.cashier:
        story.append(Paragraph(f"Served by: {sale.cashier.get_full_name() or sale.cashier.username}", normal_style))
    if sale.customer_name:
        story.append(Paragraph(f"Customer: {sale.customer_name}", normal_style))
    story.append(Spacer(1, 0.1 * inch))

    items_data = [['Item', 'Qty', 'Price', 'Total']]
    for item in sale.items.all():
        items_data.append([
            item.product_name[:18],
            str(item.quantity),
            f"{item.unit_price:,.2f}",
            f"{item.total_price:,.2f}"
        ])

    items_table = Table(items_data, colWidths=[1.2 * inch, 0.35 * inch, 0.55 * inch, 0.5 * inch])
    items_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 7),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('LINEBELOW', (0, 0), (-1, 0), 0.5, colors.black),
        ('LINEBELOW', (0, -1), (-1, -1), 0.5, colors.black),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 0.1 * inch))

    story.append(Paragraph(f"Subtotal: KES {sale.subtotal:,.2f}", normal_style))
    if sale.tax_amount > 0:
        story.append(Paragraph(f"Tax: KES {sale.tax_amount:,.2f}", normal_style))
    story.append(Paragraph(f"TOTAL: KES {sale.total:,.2f}", bold_style))
    story.append(Paragraph(f"Payment: {sale.payment_label}", normal_style))

    if sale.payment_method == 'CASH':
        story.append(Paragraph(f"Tendered: KES {sale.amount_tendered:,.2f}", normal_style))
        story.append(Paragraph(f"Change: KES {sale.change_due:,.2f}", normal_style))
    if sale.mpesa_receipt:
        story.append(Paragraph(f"M-Pesa Ref: {sale.mpesa_receipt}", normal_style))
    if sale.payment_method == 'MADENI':
        story.append(Paragraph("Balance added to your account", normal_style))

    story.append(Spacer(1, 0.2 * inch))
    story.append(Paragraph("Asante! Thank you for shopping with us.", center_style))
    story.append(Paragraph("Powered by DukaBook", center_style))

    doc.build(story)

    buffer.seek(0)
    return buffer.getvalue()
