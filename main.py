#!/usr/bin/env python3
"""untwine - resolve ambiguous type references in C# projects."""

from untwine.cli import main

if __name__ == "__main__":
    main()
