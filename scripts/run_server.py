#!/usr/bin/env python3
"""
Start the item store HTTP API with uvicorn.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

sys.path.insert(0, str(Path(__file__).parent.parent))

from itemstore.core.config import validate_config


def main():
    parser = argparse.ArgumentParser(description="Run the semantic item store API server")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    args = parser.parse_args()

    for issue in validate_config():
        print(f"Configuration issue: {issue}", file=sys.stderr)

    uvicorn.run("itemstore.api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
