"""Run the Telemetry Center API server: ``python -m telemetry_center``."""

from telemetry_center.web.server import main

if __name__ == "__main__":
    main()
