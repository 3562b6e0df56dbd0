"""Run the API and the ingestion worker in development mode."""
import subprocess
import sys
import time
import signal
from pathlib import Path

processes = []


def signal_handler(sig, frame):
    """Handle shutdown signal."""
    print("\nShutting down services...")
    for proc in processes:
        proc.terminate()
    for proc in processes:
        proc.wait()
    sys.exit(0)


signal.signal(signal.SIGINT, signal_handler)
signal.signal(signal.SIGTERM, signal_handler)


def main():
    """Run all services."""
    root = Path(__file__).parent.parent

    services = [
        ("classifier", [sys.executable, "-m", "hazardwatch.classifier.main"]),
        ("api", [sys.executable, "-m", "hazardwatch.api.main"]),
    ]

    print("Starting services...")
    for name, cmd in services:
        print(f"Starting {name}...")
        proc = subprocess.Popen(cmd, cwd=root)
        processes.append(proc)
        time.sleep(2)

    print("All services started. Press Ctrl+C to stop.")

    for proc in processes:
        proc.wait()


if __name__ == "__main__":
    main()
