"""
Parse startup import files (CSV or JSON) into write payloads.

CSV headers may be the export's own column titles ("Company Name",
"Founder", ...) or raw payload keys; both end up as payload keys that the
field-mapping normalizer understands. JSON may be a bare list or the export
envelope (``{"startups": [...]}``).
"""
from __future__ import annotations

import io
import json
from typing import Union

import pandas as pd

from utils.formatters import parse_date

# Export column title -> payload key
COLUMN_MAP = {
    "Company Name": "companyName",
    "Company": "companyName",
    "Founder": "founderName",
    "Founder Name": "founderName",
    "Email": "founderEmail",
    "Founder Email": "founderEmail",
    "Mobile": "founderMobile",
    "Phone": "founderMobile",
    "City": "city",
    "Sector": "sector",
    "Sector Other": "sectorOther",
    "Domain": "domain",
    "Stage": "stage",
    "Status": "status",
    "Team Size": "teamSize",
    "Website": "website",
    "Description": "description",
    "Funding Received": "fundingReceived",
    "Revenue Generated": "revenueGenerated",
    "DPIIT No": "dpiitNo",
    "Bhaskar ID": "bhaskarId",
    "Onboarded Date": "registrationDate",
    "Registration Date": "registrationDate",
    "Recognition Date": "recognitionDate",
    "Graduated Date": "graduatedDate",
}

# read-only / derived columns an export carries
IGNORED_COLUMNS = {"Magic Code", "magicCode", "Total Revenue", "Total Achievements", "id"}

DATE_KEYS = ("registrationDate", "onboardedDate", "recognitionDate", "graduatedDate")


def _clean(row: dict) -> dict:
    payload = {}
    for key, value in row.items():
        if key in IGNORED_COLUMNS:
            continue
        key = COLUMN_MAP.get(key, key)
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            continue
        if key in DATE_KEYS:
            parsed = parse_date(value)
            if parsed is None:
                continue
            value = parsed.isoformat()
        payload[key] = value
    return payload


def parse_csv(content: bytes) -> list[dict]:
    df = pd.read_csv(io.BytesIO(content), dtype=str, encoding="utf-8-sig").fillna("")
    df.columns = [str(c).strip() for c in df.columns]
    return [_clean(row) for row in df.to_dict("records")]


def parse_json(content: Union[bytes, str]) -> list[dict]:
    data = json.loads(content)
    if isinstance(data, dict):
        data = data.get("startups", [])
    if not isinstance(data, list):
        raise ValueError("JSON import must be a list of startups or an export envelope")
    return [_clean(item) for item in data if isinstance(item, dict)]


def parse_import_file(filename: str, content: bytes) -> list[dict]:
    name = (filename or "").lower()
    if name.endswith(".json"):
        return parse_json(content)
    if name.endswith(".csv") or name.endswith(".txt"):
        return parse_csv(content)
    raise ValueError("Unsupported import file type (expected .csv or .json)")
