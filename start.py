#!/usr/bin/env python
"""Start the Telemetry Service."""

import os
import sys
from pathlib import Path

# Change to script directory so relative paths work correctly
script_dir = Path(__file__).parent.resolve()
os.chdir(script_dir)

# Add src to path
src_path = script_dir / "src"
sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    # Pick up ./config.yaml when no explicit config is given
    if "TELEMETRY_SVC_CONFIG" not in os.environ and (script_dir / "config.yaml").exists():
        os.environ["TELEMETRY_SVC_CONFIG"] = str(script_dir / "config.yaml")

    from telemetry_svc.main import run
    run()
