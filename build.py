#!/usr/bin/env python3
from blogpress.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
