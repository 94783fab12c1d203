#!/usr/bin/env python3
"""
Product image harvester — Rich CLI entry point.

Usage:
    python main.py                         # Show commands
    python main.py run                     # Process the configured items CSV
    python main.py run -p relaxed -w 8     # Relaxed profile, 8 downloads at once
    python main.py config download         # Show one config section
    python main.py check-url URL [URL ...]
    python main.py score photo.jpg
    python main.py match URL "Item name" --brand Acme
"""

from cli.app import app

if __name__ == "__main__":
    app()
