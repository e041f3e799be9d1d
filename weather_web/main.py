import os
import sys
import signal
import subprocess
import time
from types import FrameType
from typing import List, Optional, Any
import logging as log

from weather_web import config
from weather_web.api.server import start_api

log.basicConfig(level=config.LOG_LEVEL)

procs: List[subprocess.Popen[Any]] = []


def shutdown_handler(sig: int, frame: Optional[FrameType]) -> None:
    log.info("Shutting down...")

    for proc in procs:
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=10)
            except subprocess.TimeoutExpired:
                proc.kill()

    sys.exit(0)


def main() -> None:
    api_proc = start_api(
        config.API_HOST,
        config.API_PORT,
        env=dict(os.environ),
        stdout=sys.stdout,
        stderr=sys.stderr,
    )
    procs.append(api_proc)
    log.info(
        f"Weather station API started on "
        f"http://{config.API_HOST}:{config.API_PORT}"
    )

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        while True:
            if api_proc.poll() is not None:
                log.error("API process exited unexpectedly")
                sys.exit(api_proc.returncode or 1)
            time.sleep(0.1)
    except KeyboardInterrupt:
        shutdown_handler(signal.SIGINT, None)


if __name__ == "__main__":
    main()
