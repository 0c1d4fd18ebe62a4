#!/usr/bin/env python3
# start-microservices.py
# -------------------------------
# Launcher for the portfolio service
# -------------------------------

import subprocess
import sys
import time

from shared.config import load_settings


def start_service(service_name, app_path, host, port):
    """Start a FastAPI service under uvicorn"""
    print(f"Starting {service_name} on port {port}...")
    process = subprocess.Popen([
        sys.executable, "-m", "uvicorn", app_path,
        "--host", host, "--port", str(port)
    ])
    return process


def main():
    """Start the portfolio service and wait for Ctrl+C"""
    settings = load_settings()
    services = []

    try:
        portfolio_service = start_service(
            "Portfolio Service",
            "services.portfolio_service:app",
            settings.host,
            settings.port
        )
        services.append(("Portfolio Service", portfolio_service))

        time.sleep(2)

        print("\n🚀 Portfolio service started!")
        print(f"⚛️  Mode: {settings.mode}")
        print(f"📖 Docs: http://localhost:{settings.port}/docs")
        print("\nTo start the presentation layer:")
        print("streamlit run services/presentation_service.py")
        print("\nPress Ctrl+C to stop all services")

        while True:
            for name, process in services:
                if process.poll() is not None:
                    print(f"❌ {name} has stopped unexpectedly")
                    return 1
            time.sleep(1)

    except KeyboardInterrupt:
        print("\n🛑 Stopping services...")
        for name, process in services:
            print(f"Stopping {name}...")
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
        print("✅ All services stopped")
        return 0

    except OSError as e:
        print(f"❌ Error starting services: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
