#!/usr/bin/env python
"""
Persistent backend runner for payflow.
Keeps uvicorn running even if it crashes.
"""
import os
import subprocess
import sys
import time

PORT = os.getenv("PORT", "8000")

while True:
    print(f"\n[INFO] Starting payflow on port {PORT}...")
    try:
        subprocess.run([sys.executable, "-m", "uvicorn", "payflow.main:app", "--port", PORT], check=False)
    except KeyboardInterrupt:
        print("\n[INFO] Shutting down backend...")
        break

    print("[INFO] Backend stopped, will restart in 2 seconds...")
    time.sleep(2)
