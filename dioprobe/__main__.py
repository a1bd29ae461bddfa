#!/usr/bin/env python3
"""Run dioprobe with ``python -m dioprobe``."""

from __future__ import annotations

from dioprobe.cli.main import main

if __name__ == "__main__":
    main()
