"""
Startup script to serve the report dashboard (Streamlit) and the report API
(FastAPI) from one container.
"""

import logging
import os
import socket
import subprocess
import threading
import time

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

for module_logger in ('utils', 'utils.supabase_gateway', 'utils.session_controller', 'api'):
    logging.getLogger(module_logger).setLevel(logging.INFO)


def is_port_in_use(port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(('localhost', port)) == 0


def find_available_port(start_port, max_attempts=10):
    """First free port at or above start_port"""
    for port in range(start_port, start_port + max_attempts):
        if not is_port_in_use(port):
            return port
    logger.warning(f"No free port in {start_port}-{start_port + max_attempts - 1}, trying {start_port}")
    return start_port


def run_dashboard(port):
    """Run the Streamlit dashboard (blocks)"""
    logger.info(f"🚀 Starting report dashboard on port {port}...")
    try:
        subprocess.run([
            "streamlit", "run", "app.py",
            "--server.port", str(port),
            "--server.address", "0.0.0.0",
            "--server.headless", "true",
        ], check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ Dashboard exited: {e}")
        raise


def run_api(port):
    """Run the report API (blocks)"""
    logger.info(f"🚀 Starting report API on port {port}...")
    try:
        subprocess.run([
            "uvicorn", "api:app",
            "--host", "0.0.0.0",
            "--port", str(port),
        ], check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ Report API exited: {e}")
        raise


def main():
    # The platform routes PORT to the API; the dashboard takes the next free Streamlit port
    api_port = int(os.environ.get('PORT', 8080))
    dashboard_port = find_available_port(int(os.environ.get('STREAMLIT_PORT', 8501)))

    api_thread = threading.Thread(target=run_api, args=(api_port,), daemon=True)
    api_thread.start()
    time.sleep(2)

    run_dashboard(dashboard_port)


if __name__ == "__main__":
    main()
