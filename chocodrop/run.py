"""ChocoDrop — server entry point.

Usage:
    python -m chocodrop.run
    chocodrop                     (console script)
"""

import os
import threading
import webbrowser


def _get_base_dir():
    """The chocodrop/ directory; .env and logs/ live beneath it."""
    return os.path.dirname(os.path.abspath(__file__))


def main():
    os.environ.setdefault("CHOCODROP_BASE_DIR", _get_base_dir())

    # Import config after env vars are set
    from chocodrop.backend.config import HOST, PORT

    url = f"http://{HOST}:{PORT}"
    print("=" * 56)
    print("  ChocoDrop")
    print(f"  Server: {url}")
    print(f"  Docs:   {url}/docs")
    print("=" * 56)
    print()

    if os.environ.get("CHOCODROP_OPEN_BROWSER", "").lower() in ("1", "true", "yes"):
        def _open_browser():
            import time
            time.sleep(1.5)
            webbrowser.open(f"{url}/docs")

        threading.Thread(target=_open_browser, daemon=True).start()

    import uvicorn
    uvicorn.run(
        "chocodrop.backend.main:app",
        host=HOST,
        port=PORT,
        log_level="info",
    )


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:
        print()
        print(f"[ERROR] {exc}")
        print()
        raise SystemExit(1)
