"""Forest Oracle — dev launcher. Runs the API server with uvicorn."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "13013"))


def main():
    parser = argparse.ArgumentParser(description="Forest Oracle dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--offline", action="store_true",
                        help="Use the scripted offline narrator")
    parser.add_argument("--reload", action="store_true",
                        help="Restart on code changes")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # create_app() reads settings from the environment
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())
    if args.offline:
        os.environ["FOREST_ORACLE_OFFLINE"] = "1"

    print(f"Starting Forest Oracle on http://localhost:{BACKEND_PORT} ...")
    uvicorn.run(
        "forest_oracle.app:create_app", factory=True,
        host=HOST, port=BACKEND_PORT, reload=args.reload,
    )


if __name__ == "__main__":
    main()
