"""Run a real LLM extraction call against a short sales note.

Usage (from repo root):
    python backend/scripts/smoke_llm_extractor.py

Usage (from backend/):
    python scripts/smoke_llm_extractor.py
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from crm_ledger.extraction.llm_extractor import get_default_extractor

_DEMO_NOTE = (
    "Met with Priya Shah (Head of Procurement, priya@acme-robotics.example) at Acme Robotics. "
    "They are a B2B industrial automation firm in Germany with about 1,200 employees. "
    "Priya confirmed a 250k USD budget for the Fleet Monitor rollout and expects to sign by end of next month. "
    "Their CTO Marc Weber is the final decision maker."
)


def main() -> None:
    extractor = get_default_extractor()
    record = extractor.extract(_DEMO_NOTE)
    print(json.dumps(record.model_dump(exclude_none=True), indent=2))


if __name__ == "__main__":
    main()
