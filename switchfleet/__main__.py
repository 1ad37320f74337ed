"""``python -m switchfleet <device_list_file> <script_list_file> <port>``."""

from __future__ import annotations

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="switchfleet")
    parser.add_argument("device_list_file")
    parser.add_argument("script_list_file")
    parser.add_argument("port", type=int)
    parser.add_argument("--host", default="0.0.0.0")
    args = parser.parse_args(argv)

    # Settings are read from the environment at import time
    os.environ["SWITCHFLEET_DEVICE_LIST_FILE"] = args.device_list_file
    os.environ["SWITCHFLEET_SCRIPT_LIST_FILE"] = args.script_list_file
    os.environ.setdefault("SWITCHFLEET_PUBLIC_ADDRESS", f"localhost:{args.port}")

    import uvicorn

    uvicorn.run("switchfleet.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
