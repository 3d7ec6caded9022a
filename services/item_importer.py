import math
import re

import pandas as pd

REQUIRED_COLUMNS = [
    "product_id",
    "quantity",
]

OPTIONAL_COLUMNS = [
    "product_name",
    "length",
    "weight",
    "position",
    "notes",
]

COLUMN_ALIASES = {
    "productid": "product_id",
    "product id": "product_id",
    "product": "product_id",
    "sku": "product_id",
    "item": "product_id",
    "qty": "quantity",
    "units": "quantity",
    "name": "product_name",
    "productname": "product_name",
    "product name": "product_name",
    "description": "product_name",
    "desc": "product_name",
    "length_m": "length",
    "length (m)": "length",
    "weight_kg": "weight",
    "weight (kg)": "weight",
    "unit_weight": "weight",
    "order": "position",
    "note": "notes",
    "comments": "notes",
}


class ItemImporter:
    def parse_file(self, file_stream, filename=""):
        name = (filename or "").strip().lower()
        if name.endswith((".xlsx", ".xlsm", ".xls")):
            return self.parse_excel(file_stream)
        return self.parse_csv(file_stream)

    def parse_csv(self, file_stream):
        df = pd.read_csv(file_stream, dtype=str, keep_default_na=False)
        return self._parse_frame(df)

    def parse_excel(self, file_stream):
        df = pd.read_excel(file_stream, sheet_name=0, dtype=str, keep_default_na=False)
        return self._parse_frame(df)

    def _parse_frame(self, df):
        column_map = self._normalize_columns(df.columns)

        available = set(column_map.values())
        missing = [col for col in REQUIRED_COLUMNS if col not in available]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = df.rename(columns=column_map)
        allowed_columns = set(REQUIRED_COLUMNS + OPTIONAL_COLUMNS)
        df = df[[col for col in df.columns if col in allowed_columns]]

        items = []
        invalid_rows = []
        for row_number, row in enumerate(df.to_dict(orient="records"), start=2):
            item, reason = self.parse_item(row, default_position=len(items))
            if item:
                items.append(item)
            else:
                invalid_rows.append(
                    {
                        "row": row_number,
                        "product_id": self._clean_value(row.get("product_id")),
                        "reason": reason,
                    }
                )

        return {
            "items": items,
            "invalid_rows": invalid_rows,
            "total_rows": len(df),
        }

    def parse_item(self, row, default_position=0):
        product_id = self._clean_value(row.get("product_id"))
        if not product_id:
            return None, "Missing product id."

        quantity = self._parse_number(row.get("quantity"))
        if quantity is None or quantity <= 0 or quantity != int(quantity):
            return None, "Quantity must be a positive whole number."

        length = self._parse_number(row.get("length"))
        if length is not None and length < 0:
            return None, "Length cannot be negative."
        weight = self._parse_number(row.get("weight"))
        position = self._parse_number(row.get("position"))

        return (
            {
                "product_id": product_id,
                "product_name": self._clean_value(row.get("product_name")) or product_id,
                "quantity": int(quantity),
                "length": length,
                "weight": weight,
                "position": int(position) if position is not None else default_position,
                "notes": self._clean_value(row.get("notes")),
            },
            None,
        )

    def _normalize_columns(self, columns):
        column_map = {}
        for column in columns:
            key = re.sub(r"\s+", " ", str(column or "").strip().lower())
            if key in REQUIRED_COLUMNS or key in OPTIONAL_COLUMNS:
                column_map[column] = key
            elif key in COLUMN_ALIASES:
                column_map[column] = COLUMN_ALIASES[key]
        return column_map

    def _clean_value(self, value):
        if value is None:
            return ""
        text = str(value).strip()
        return "" if text.lower() in {"nan", "none"} else text

    def _parse_number(self, value):
        text = self._clean_value(value).replace(",", ".")
        if not text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
        if math.isnan(parsed) or math.isinf(parsed):
            return None
        return parsed
