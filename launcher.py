# launcher.py
"""
Runs the billing API and the billing scheduler side by side.

    python launcher.py                       # API on UVICORN_PORT (8000) + scheduler
    python launcher.py --port 9000
    python launcher.py --no-scheduler        # API only
"""
import argparse
import logging
import multiprocessing
import os
import sys
import time

from dotenv import load_dotenv

logger = logging.getLogger("Launcher")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ISP billing launcher")
    parser.add_argument("--host", default=os.getenv("UVICORN_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("UVICORN_PORT", 8000)))
    parser.add_argument("--no-scheduler", action="store_true", help="do not start the scheduler process")
    return parser.parse_args(argv)


def prepare_database():
    from isp_billing.db.init_db import setup_database

    try:
        setup_database()
    except Exception as e:
        logger.critical(f"Database initialization failed: {e}", exc_info=True)
        sys.exit(1)


def serve_api(host: str, port: int):
    import uvicorn

    from isp_billing.main import app

    try:
        uvicorn.run(app, host=host, port=port, log_level="info")
    except KeyboardInterrupt:
        pass


def main(argv=None):
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - [Launcher] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = parse_args(argv)
    # The scheduler process notifies the API on this port
    os.environ["UVICORN_PORT"] = str(args.port)
    prepare_database()

    from isp_billing.scheduler import run_scheduler

    workers = [multiprocessing.Process(target=serve_api, args=(args.host, args.port), name="API")]
    if not args.no_scheduler:
        workers.append(multiprocessing.Process(target=run_scheduler, name="Scheduler"))

    logger.info(f"ISP Billing on http://{args.host}:{args.port} (scheduler: {not args.no_scheduler})")
    try:
        for worker in workers:
            worker.start()
            time.sleep(2)
        for worker in workers:
            worker.join()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        for worker in workers:
            if worker.is_alive():
                worker.terminate()


if __name__ == "__main__":
    main()
