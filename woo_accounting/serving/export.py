"""
Flat Row Export

Serializes flat rows to a `;`-separated CSV for spreadsheet locales that
use a comma as decimal separator.
"""

from decimal import Decimal
from typing import Iterable

import polars as pl

from woo_accounting.transformation.flattener import FlatRow

CSV_COLUMNS = [
    "Date",
    "Référence",
    "Nom",
    "Prénom",
    "Nature",
    "Moyen de paiement",
    "Montant",
    "Devise",
    "Statut",
    "Ville",
]
CSV_SEPARATOR = ";"
UTF8_BOM = "\ufeff"


def format_amount(amount: Decimal) -> str:
    """`-30.5` -> `-30,50`"""
    return f"{amount:.2f}".replace(".", ",")


def rows_to_frame(rows: Iterable[FlatRow]) -> pl.DataFrame:
    """Flat rows as a string-typed DataFrame with the export column names"""
    columns = {name: [] for name in CSV_COLUMNS}
    for row in rows:
        values = [
            row.date,
            row.reference,
            row.last_name,
            row.first_name,
            row.nature,
            row.payment_method,
            format_amount(row.amount),
            row.currency,
            row.status,
            row.city,
        ]
        for name, value in zip(CSV_COLUMNS, values):
            columns[name].append(value)

    return pl.DataFrame(columns, schema={name: pl.Utf8 for name in CSV_COLUMNS})


def rows_to_csv(rows: Iterable[FlatRow]) -> str:
    """CSV text with a UTF-8 BOM so spreadsheet tools detect the encoding"""
    return UTF8_BOM + rows_to_frame(rows).write_csv(separator=CSV_SEPARATOR)
