#!/usr/bin/env python3
"""Build the ICD-10-CM catalog feed from the CMS code files.

CMS publishes annual releases at:
https://www.cms.gov/medicare/coding-billing/icd-10-codes

Two text layouts are understood:
- Codes file (icd10cm_codes_YYYY.txt): code padded to 7 characters, then
  the long description
- Order file (icd10cm_order_YYYY.txt): order number, code, billable flag,
  short description (60 characters), long description

Codes are published without the dot; it is restored after the 3-character
category (J189 -> J18.9).

Usage:
    python scripts/fetch_icd10_codes.py
    python scripts/fetch_icd10_codes.py --input icd10cm_codes_2024.txt
    python scripts/fetch_icd10_codes.py --output fixtures/icd10_codes.json
"""

import argparse
import json
import logging
import re
import sys
import zipfile
from io import BytesIO
from pathlib import Path

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Note: URLs change annually, may need updating
CMS_ICD10_URLS = [
    "https://www.cms.gov/files/zip/2024-code-descriptions-tabular-order-updated-01-11-2024.zip",
    "https://www.cms.gov/files/zip/2023-code-descriptions-tabular-order.zip",
]

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
OUTPUT_FILE = PROJECT_ROOT / "fixtures" / "icd10_codes.json"

_CODE_RE = re.compile(r"^[A-Z][0-9][0-9A-Z]{1,5}$")
_ORDER_LINE_RE = re.compile(r"^\d{5} ")


def format_code(raw_code: str) -> str:
    """Insert the dot after the category (J189 -> J18.9, I10 -> I10)."""
    code = raw_code.strip().upper().replace(".", "")
    if len(code) <= 3:
        return code
    return f"{code[:3]}.{code[3:]}"


def parse_order_line(line: str) -> dict[str, str] | None:
    """Parse one line of the CMS order file (header rows are skipped)."""
    code = line[6:13].strip()
    is_billable = line[14:15] == "1"
    description = line[77:].strip()
    if not is_billable or not description or not _CODE_RE.match(code):
        return None
    return {"code": format_code(code), "desc": description}


def parse_codes_line(line: str) -> dict[str, str] | None:
    """Parse one line of the CMS codes file, fixed-width or tab-separated."""
    if "\t" in line:
        parts = line.split("\t")
        code, description = parts[0].strip(), parts[1].strip() if len(parts) > 1 else ""
    else:
        code, description = line[:7].strip(), line[7:].strip()

    if not description or not _CODE_RE.match(code.replace(".", "")):
        return None
    return {"code": format_code(code), "desc": description}


def parse_cms_text_content(content: str) -> list[dict[str, str]]:
    """Parse a CMS code file into catalog feed records.

    Returns:
        Records shaped {"code": "J18.9", "desc": "..."}, in file order,
        without duplicate codes.
    """
    records: list[dict[str, str]] = []
    seen: set[str] = set()

    for line in content.splitlines():
        if not line.strip():
            continue

        if _ORDER_LINE_RE.match(line):
            record = parse_order_line(line)
        else:
            record = parse_codes_line(line)

        if record is None or record["code"] in seen:
            continue
        seen.add(record["code"])
        records.append(record)

    logger.info(f"Parsed {len(records)} codes from CMS file")
    return records


def download_icd10_codes(urls: list[str] = CMS_ICD10_URLS) -> list[dict[str, str]]:
    """Download the CMS release archive and parse its codes file.

    Raises:
        RuntimeError: No URL yielded a parsable codes file.
    """
    for url in urls:
        logger.info(f"Attempting to download from: {url}")
        try:
            response = httpx.get(url, timeout=60.0, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Download failed: {e}")
            continue

        with zipfile.ZipFile(BytesIO(response.content)) as zf:
            for name in zf.namelist():
                if "code" in name.lower() and name.endswith(".txt"):
                    logger.info(f"Extracting: {name}")
                    with zf.open(name) as f:
                        records = parse_cms_text_content(f.read().decode("utf-8", errors="replace"))
                    if records:
                        return records

    raise RuntimeError("Could not download ICD-10-CM codes from any CMS URL")


def main() -> int:
    parser = argparse.ArgumentParser(description="Build the ICD-10-CM catalog feed")
    parser.add_argument("--input", type=Path, help="Local CMS codes or order file (skips download)")
    parser.add_argument("--output", type=Path, default=OUTPUT_FILE, help="Output JSON path")
    args = parser.parse_args()

    if args.input:
        records = parse_cms_text_content(args.input.read_text(encoding="utf-8", errors="replace"))
    else:
        try:
            records = download_icd10_codes()
        except RuntimeError as e:
            logger.error(str(e))
            return 1

    if not records:
        logger.error("No ICD-10 codes parsed; output not written")
        return 1

    args.output.parent.mkdir(parents=True, exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(records, f, indent=1, ensure_ascii=False)

    logger.info(f"Wrote {len(records)} codes to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
