#!/usr/bin/env python3
"""Run the donation server from a source checkout without installing it."""

from __future__ import annotations

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from easy_donate.main import run  # noqa: E402


if __name__ == "__main__":
    run()
