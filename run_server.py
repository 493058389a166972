#!/usr/bin/env python
"""
Production Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn analytics_dashboard.main:app -c gunicorn.conf.py
"""

import argparse
import os
import subprocess

import uvicorn

APP = "analytics_dashboard.main:app"


def run_dev_server(port: int) -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        APP,
        host="0.0.0.0",
        port=port,
        reload=True,
        reload_dirs=["analytics_dashboard"],
        log_level="debug",
    )


def run_prod_server(port: int) -> None:
    """Run production server with Uvicorn directly."""
    uvicorn.run(
        APP,
        host="0.0.0.0",
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        access_log=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn() -> None:
    """Run with Gunicorn (recommended for production)."""
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], check=True)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Analytics Dashboard API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)), help="Port to run on")

    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.port)
    elif args.gunicorn:
        os.environ.setdefault("BIND", f"0.0.0.0:{args.port}")
        run_gunicorn()
    else:
        run_prod_server(args.port)
