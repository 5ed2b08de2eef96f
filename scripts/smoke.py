"""Smoke test para el servidor de Telemetry Center."""

from __future__ import annotations

import json
import sys
import threading
import time
import urllib.request
from dataclasses import replace
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from telemetry_center.core import Settings
from telemetry_center.web.server import create_app


def fetch_json(url: str) -> dict[str, object]:
    with urllib.request.urlopen(url) as response:  # nosec - uso local en smoke test
        payload = response.read().decode("utf-8")
    return json.loads(payload)


def run_smoke() -> None:
    settings = replace(Settings.from_env(), port=0)
    server = create_app(settings)
    address = server.server_address()
    print(f"Iniciando servidor en {address}")

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        time.sleep(0.5)  # pequeño margen para que el hilo arranque
        current = fetch_json(f"{address}/api/system/data")
        risk = fetch_json(f"{address}/api/predictive")
        assert "cpuUsage" in current, "Muestra sin datos de CPU"
        assert "health" in current, "Muestra sin puntuación de salud"
        assert "riskScore" in risk, "Evaluación de riesgo incompleta"
        print("SMOKE_OK", {
            "cpu_usage": current.get("cpuUsage"),
            "health": current.get("health"),
            "risk": risk.get("riskScore"),
        })
    finally:
        server.stop()
        thread.join()

if __name__ == "__main__":
    run_smoke()
