"""
Export module: generates PDF, Word (.docx), CSV and JSON reports
from an AnalysisResult.
"""

import io
import csv
import json
import re
from datetime import datetime
from typing import Optional

from analyzer import AnalysisResult, risk_band


# ─────────────────────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────────────────────

RISK_COLOR = {
    "low":    (76,  175, 132),   # green
    "medium": (244, 200,  66),   # yellow
    "high":   (255, 107, 122),   # red
}

GOLD    = (212, 175,  55)
DARK    = ( 13,  13,  13)
GREY    = (100, 100, 100)
LGREY   = (220, 220, 220)

DISCLAIMER = ("This report is for informational purposes only and does not constitute legal advice. "
              "For important agreements, consult a qualified legal professional.")

def _now() -> str:
    return datetime.now().strftime("%B %d, %Y at %H:%M")

def _risk_icon(level: str) -> str:
    return {"low": "✓", "medium": "!", "high": "✕"}.get(level, "?")

def _esc(text: str) -> str:
    """Escape text for reportlab's mini-markup."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")

def export_filename(title: str, suffix: str) -> str:
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', title)}_{suffix}"

def csv_risk_level(score: int) -> str:
    if score > 80:
        return "High"
    elif score > 60:
        return "Medium"
    return "Low"


# ─────────────────────────────────────────────────────────────────────────────
# PDF report  (ReportLab)
# ─────────────────────────────────────────────────────────────────────────────

def export_pdf(result: AnalysisResult) -> bytes:
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
    from reportlab.lib.units import mm
    from reportlab.lib import colors
    from reportlab.platypus import (
        SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle,
        HRFlowable, KeepTogether
    )

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=20*mm, rightMargin=20*mm,
        topMargin=18*mm, bottomMargin=18*mm,
        title="Privacy Risk Report"
    )

    W, H = A4
    cw = W - 40*mm  # content width

    def rgb(t):  return colors.Color(*[v/255 for v in t])

    band    = risk_band(result.risk_score)
    rc      = rgb(RISK_COLOR[band])
    gold_c  = rgb(GOLD)
    dark_c  = rgb(DARK)
    grey_c  = rgb(GREY)
    lgrey_c = rgb(LGREY)

    base = getSampleStyleSheet()

    def sty(name, parent="Normal", **kw):
        return ParagraphStyle(name, parent=base[parent], **kw)

    s_title = sty("title", fontSize=20, leading=26, textColor=dark_c, spaceAfter=4, fontName="Helvetica-Bold")
    s_h2    = sty("h2",    fontSize=13, leading=18, textColor=dark_c, spaceBefore=14, spaceAfter=6, fontName="Helvetica-Bold")
    s_body  = sty("body",  fontSize=9,  leading=14, textColor=dark_c, spaceAfter=4)
    s_small = sty("small", fontSize=8,  leading=12, textColor=grey_c, spaceAfter=2)

    story = []

    # ── Header ──────────────────────────────────────────────────────────────
    header_tbl = Table([[
        Paragraph(_esc(result.document_title), s_title),
        Paragraph(f"Generated {_now()}", s_small),
    ]], colWidths=[cw*0.72, cw*0.28])
    header_tbl.setStyle(TableStyle([
        ("VALIGN",        (0,0), (-1,-1), "BOTTOM"),
        ("ALIGN",         (1,0), (1,0),   "RIGHT"),
        ("BOTTOMPADDING", (0,0), (-1,-1), 8),
    ]))
    story.append(header_tbl)
    if result.company_name:
        story.append(Paragraph(_esc(result.company_name).upper(), s_small))
    story.append(HRFlowable(width="100%", thickness=2, color=gold_c, spaceAfter=12))

    # ── Risk banner ─────────────────────────────────────────────────────────
    risk_tbl = Table([[
        Paragraph(f"<b>{_risk_icon(band)}  {band.title()} Risk</b>",
                  sty("rk", fontSize=14, textColor=rc, fontName="Helvetica-Bold")),
        Paragraph(f"{len(result.risk_items)} risk item(s) identified", s_body),
        Paragraph(f"<b>{result.risk_score}/100</b>",
                  sty("rs", fontSize=14, textColor=rc, fontName="Helvetica-Bold", alignment=2)),
    ]], colWidths=[cw*0.3, cw*0.5, cw*0.2])
    risk_tbl.setStyle(TableStyle([
        ("BOX",           (0,0), (-1,-1), 1.5, rc),
        ("VALIGN",        (0,0), (-1,-1), "MIDDLE"),
        ("LEFTPADDING",   (0,0), (-1,-1), 10),
        ("RIGHTPADDING",  (0,0), (-1,-1), 10),
        ("TOPPADDING",    (0,0), (-1,-1), 10),
        ("BOTTOMPADDING", (0,0), (-1,-1), 10),
    ]))
    story.append(KeepTogether([risk_tbl]))
    story.append(Spacer(1, 14))

    # ── Summary ─────────────────────────────────────────────────────────────
    for section in result.summary_data:
        story.append(Paragraph(_esc(section.title), s_h2))
        story.append(HRFlowable(width="100%", thickness=0.5, color=lgrey_c, spaceAfter=8))
        for line in section.content.splitlines():
            if line.strip():
                story.append(Paragraph(_esc(line), s_body))

    # ── Risk items ──────────────────────────────────────────────────────────
    story.append(Paragraph("Risk Items", s_h2))
    story.append(HRFlowable(width="100%", thickness=0.5, color=lgrey_c, spaceAfter=8))

    for item in result.risk_items:
        ic = rgb(RISK_COLOR.get(item.severity, GREY))
        tbl = Table([[
            Paragraph(f"<b>{item.severity.upper()}</b>",
                      sty("sev", fontSize=8, leading=12, textColor=ic, fontName="Helvetica-Bold")),
            [
                Paragraph(f"<b>{_esc(item.clause)}</b>", sty("kt", fontSize=9, leading=13, fontName="Helvetica-Bold")),
                Paragraph(_esc(item.risk), s_body),
                Paragraph(f"<i>Impact:</i> {_esc(item.impact)}", s_small),
                Paragraph(f"<i>Recommendation:</i> {_esc(item.recommendation)}", s_small),
            ],
        ]], colWidths=[18*mm, cw - 18*mm])
        tbl.setStyle(TableStyle([
            ("VALIGN",        (0,0), (-1,-1), "TOP"),
            ("BOX",           (0,0), (-1,-1), 0.75, lgrey_c),
            ("LEFTPADDING",   (0,0), (-1,-1), 8),
            ("RIGHTPADDING",  (0,0), (-1,-1), 8),
            ("TOPPADDING",    (0,0), (-1,-1), 8),
            ("BOTTOMPADDING", (0,0), (-1,-1), 8),
        ]))
        story.append(KeepTogether([tbl, Spacer(1, 5)]))

    # ── Individual terms ────────────────────────────────────────────────────
    if result.individual_terms:
        story.append(Paragraph("Individual Terms", s_h2))
        rows = [["Term", "Risk", "Required"]]
        for term in result.individual_terms:
            rows.append([
                Paragraph(f"<b>{_esc(term.title)}</b><br/>{_esc(term.description)}", s_small),
                term.risk.title(),
                "Yes" if term.is_required else "No",
            ])
        tt = Table(rows, colWidths=[cw*0.64, cw*0.18, cw*0.18])
        tt.setStyle(TableStyle([
            ("BACKGROUND",     (0,0), (-1,0),  rgb(DARK)),
            ("TEXTCOLOR",      (0,0), (-1,0),  colors.white),
            ("FONTNAME",       (0,0), (-1,0),  "Helvetica-Bold"),
            ("FONTSIZE",       (0,0), (-1,-1), 8),
            ("ROWBACKGROUNDS", (0,1), (-1,-1), [colors.white, rgb(LGREY)]),
            ("GRID",           (0,0), (-1,-1), 0.3, lgrey_c),
            ("VALIGN",         (0,0), (-1,-1), "MIDDLE"),
        ]))
        story.append(tt)

    # ── Safety insights ─────────────────────────────────────────────────────
    si = result.safety_insights
    if si:
        story.append(Paragraph("Safety Insights", s_h2))
        story.append(HRFlowable(width="100%", thickness=0.5, color=lgrey_c, spaceAfter=8))
        story.append(Paragraph(f"<b>Trust score:</b> {si.trust_score}/100", s_body))
        story.append(Paragraph(_esc(si.comparison_to_safe_services), s_body))
        story.append(Paragraph(_esc(si.recommended_usage), s_body))
        for warning in si.key_warnings:
            story.append(Paragraph(f"⚠ {_esc(warning)}", s_body))

    # ── Footer ───────────────────────────────────────────────────────────────
    story.append(Spacer(1, 16))
    story.append(HRFlowable(width="100%", thickness=0.5, color=lgrey_c))
    story.append(Paragraph(DISCLAIMER, sty("foot", fontSize=7, leading=10, textColor=grey_c, spaceAfter=0)))

    doc.build(story)
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# Word (.docx) export
# ─────────────────────────────────────────────────────────────────────────────

def export_word(result: AnalysisResult) -> bytes:
    from docx import Document
    from docx.shared import Pt, RGBColor, Inches, Cm

    doc = Document()

    for section in doc.sections:
        section.top_margin    = Cm(2)
        section.bottom_margin = Cm(2)
        section.left_margin   = Cm(2.5)
        section.right_margin  = Cm(2.5)

    def add_para(text="", bold=False, italic=False, color=None, size=10, indent=0):
        p = doc.add_paragraph()
        if indent:
            p.paragraph_format.left_indent = Inches(indent)
        run = p.add_run(text)
        run.bold, run.italic = bold, italic
        run.font.size = Pt(size)
        if color: run.font.color.rgb = RGBColor(*color)
        return p

    # ── Title ────────────────────────────────────────────────────────────────
    title = doc.add_heading(result.document_title, 0)
    title.runs[0].font.color.rgb = RGBColor(*DARK)
    add_para(f"Generated: {_now()}", color=GREY, size=9)
    if result.company_name:
        add_para(f"Company: {result.company_name}", bold=True)

    # ── Risk ─────────────────────────────────────────────────────────────────
    band = risk_band(result.risk_score)
    doc.add_heading("Risk Assessment", 1)
    p = doc.add_paragraph()
    run = p.add_run(f"{band.title()} Risk  ({result.risk_score}/100)")
    run.bold = True; run.font.size = Pt(14); run.font.color.rgb = RGBColor(*RISK_COLOR[band])

    # ── Summary ──────────────────────────────────────────────────────────────
    for section in result.summary_data:
        doc.add_heading(section.title, 1)
        for line in section.content.splitlines():
            if line.strip():
                add_para(line, size=9)

    # ── Risk items ───────────────────────────────────────────────────────────
    doc.add_heading("Risk Items", 1)
    for item in result.risk_items:
        p = doc.add_paragraph(style="List Bullet")
        run = p.add_run(item.clause)
        run.bold = True; run.font.size = Pt(10)
        sev = p.add_run(f"  [{item.severity.upper()}]")
        sev.font.size = Pt(8); sev.font.color.rgb = RGBColor(*RISK_COLOR.get(item.severity, GREY))
        add_para(item.risk, size=9, indent=0.25)
        add_para(f"Impact: {item.impact}", italic=True, color=GREY, size=8, indent=0.25)
        add_para(f"Recommendation: {item.recommendation}", italic=True, color=GREY, size=8, indent=0.25)

    # ── Individual terms ─────────────────────────────────────────────────────
    if result.individual_terms:
        doc.add_heading("Individual Terms", 1)
        table = doc.add_table(rows=1, cols=3)
        table.style = "Table Grid"
        hdr = table.rows[0].cells
        hdr[0].text, hdr[1].text, hdr[2].text = "Term", "Risk", "Required"
        for term in result.individual_terms:
            row = table.add_row().cells
            row[0].text = f"{term.title}: {term.description}"
            row[1].text = term.risk.title()
            row[2].text = "Yes" if term.is_required else "No"

    # ── Safety insights ──────────────────────────────────────────────────────
    si = result.safety_insights
    if si:
        doc.add_heading("Safety Insights", 1)
        add_para(f"Trust score: {si.trust_score}/100", bold=True)
        add_para(si.comparison_to_safe_services, size=9)
        add_para(si.recommended_usage, size=9)
        for warning in si.key_warnings:
            doc.add_paragraph(style="List Bullet").add_run(warning).font.size = Pt(9)

    add_para(DISCLAIMER, italic=True, color=GREY, size=8)

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# CSV export
# ─────────────────────────────────────────────────────────────────────────────

def export_csv(result: AnalysisResult) -> bytes:
    buf = io.StringIO()
    w = csv.writer(buf, quoting=csv.QUOTE_ALL)

    level = csv_risk_level(result.risk_score)
    w.writerow(["Risk Item", "Risk Description", "Impact", "Recommendation", "Risk Level"])
    for item in result.risk_items:
        w.writerow([item.clause, item.risk, item.impact, item.recommendation, level])

    return buf.getvalue().encode("utf-8-sig")  # BOM for Excel compatibility


# ─────────────────────────────────────────────────────────────────────────────
# JSON export
# ─────────────────────────────────────────────────────────────────────────────

def export_json(result: AnalysisResult, original_text: Optional[str] = None) -> bytes:
    data = {
        "document_title":   result.document_title,
        "risk_score":       result.risk_score,
        "analysis_date":    datetime.now().isoformat(),
        "risk_items":       [ri.to_dict() for ri in result.risk_items],
        "summary_sections": [s.to_dict() for s in result.summary_data],
        "original_text":    original_text,
    }
    return json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
