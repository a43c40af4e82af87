#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""ROM Patch - module entry point.

Keeps `python -m rompatch` working by delegating to the command line interface.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
