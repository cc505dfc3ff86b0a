"""
Supplier message templates with i18n support.

Builds the plain-text order and rajout messages handed to the chat or
e-mail transport, plus matching e-mail subjects. Transport itself is out of
scope: callers get text.

Usage:
    from services.message_service import compose_initial_text

    text = compose_initial_text("Bécus", date(2025, 10, 16), lines)
"""

from datetime import date
from typing import Iterable, Optional

from config.settings import settings
from models.order import DEPARTMENT_ORDER, DeltaLine, Department, OrderLine
from utils.text_utils import fold

MESSAGES = {
    "fr": {
        "initial_title": "Commande {label} — Livraison {date}",
        "rajout_title": "RAJOUT {label} — Livraison {date}",
        "initial_subject": "Commande {label} — {date}",
        "rajout_subject": "[RAJOUT] {label} — {date}",
        "initial_line": "• {qty} × {name}",
        "rajout_line": "• +{qty} × {name}",
        "no_rajout": "(aucun rajout)",
        "footer": "Merci de confirmer la reception (obligatoire)",
        "dept_vente": "Vente",
        "dept_patiss": "Pâtisserie",
        "dept_boulanger": "Boulangerie",
        "dept_uncat": "Divers",
    },
    "en": {
        "initial_title": "Order {label} — Delivery {date}",
        "rajout_title": "ADD-ON {label} — Delivery {date}",
        "initial_subject": "Order {label} — {date}",
        "rajout_subject": "[ADD-ON] {label} — {date}",
        "initial_line": "• {qty} × {name}",
        "rajout_line": "• +{qty} × {name}",
        "no_rajout": "(no add-on)",
        "footer": "Please confirm receipt (required)",
        "dept_vente": "Sales counter",
        "dept_patiss": "Pastry",
        "dept_boulanger": "Bakery",
        "dept_uncat": "Other",
    },
}

WEEKDAYS = {
    "fr": ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"],
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
}

MONTHS = {
    "fr": [
        "janvier", "février", "mars", "avril", "mai", "juin",
        "juillet", "août", "septembre", "octobre", "novembre", "décembre",
    ],
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
}


def get_lang(lang: Optional[str] = None) -> str:
    """Requested language if known, else the configured one."""
    if lang in MESSAGES:
        return lang
    return settings.message_language if settings.message_language in MESSAGES else "fr"


def get_message(key: str, lang: Optional[str] = None, **kwargs) -> str:
    """
    Get translated message template and format with kwargs.

    Args:
        key: Message template key
        lang: "fr" or "en"; configured language when omitted
        **kwargs: Format arguments for the template

    Returns:
        Formatted message string
    """
    template = MESSAGES[get_lang(lang)].get(key, MESSAGES["fr"].get(key, key))
    try:
        return template.format(**kwargs)
    except KeyError:
        return template


def format_human_date(day: date, lang: Optional[str] = None) -> str:
    """
    Long date without year, e.g. "jeudi 09 octobre".

    Built from fixed tables so the output does not depend on the system
    locale.
    """
    lang = get_lang(lang)
    weekday = WEEKDAYS[lang][day.weekday()]
    month = MONTHS[lang][day.month - 1]
    if lang == "en":
        return f"{weekday}, {month} {day.day:02d}"
    return f"{weekday} {day.day:02d} {month}"


def _grouped(lines: Iterable, qty_attr: str) -> list[tuple[Department, list[tuple[int, str]]]]:
    """(department, [(qty, name)]) in the fixed department order, names sorted."""
    groups: dict[Department, list[tuple[int, str]]] = {}
    for line in lines:
        groups.setdefault(line.department, []).append(
            (getattr(line, qty_attr), line.product_name or line.product_id)
        )
    return [
        (department, sorted(groups[department], key=lambda item: fold(item[1])))
        for department in DEPARTMENT_ORDER
        if groups.get(department)
    ]


def _compose(title: str, groups, line_key: str, empty_key: Optional[str], lang: str) -> str:
    out = [settings.bakery_name, title]
    for department, items in groups:
        out.append(f"\n{get_message('dept_' + department.value, lang)}:")
        for qty, name in items:
            out.append(get_message(line_key, lang, qty=qty, name=name))
    if not groups and empty_key:
        out.append("\n" + get_message(empty_key, lang))
    out.append("\n" + get_message("footer", lang))
    return "\n".join(out)


def compose_initial_text(
    supplier_label: str,
    delivery_date: date,
    lines: Iterable[OrderLine],
    lang: Optional[str] = None,
) -> str:
    """Full order message: every line with its total quantity."""
    lang = get_lang(lang)
    title = get_message(
        "initial_title", lang,
        label=supplier_label,
        date=format_human_date(delivery_date, lang)
    )
    return _compose(title, _grouped(lines, "qty"), "initial_line", None, lang)


def compose_rajout_text(
    supplier_label: str,
    delivery_date: date,
    delta: Iterable[DeltaLine],
    lang: Optional[str] = None,
) -> str:
    """Rajout message: only the extra quantities, "+n × name"."""
    lang = get_lang(lang)
    title = get_message(
        "rajout_title", lang,
        label=supplier_label,
        date=format_human_date(delivery_date, lang)
    )
    return _compose(title, _grouped(delta, "delta"), "rajout_line", "no_rajout", lang)


def compose_subject(
    kind: str,
    supplier_label: str,
    delivery_date: date,
    lang: Optional[str] = None,
) -> str:
    """E-mail subject for an initial or rajout message."""
    lang = get_lang(lang)
    key = "rajout_subject" if kind == "rajout" else "initial_subject"
    return get_message(key, lang, label=supplier_label, date=format_human_date(delivery_date, lang))
