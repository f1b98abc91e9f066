# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import argparse
import asyncio
import contextlib
import functools
import logging
import os
import signal
import sys

from .config import Config
from .media.exceptions import MediaSourceError
from .media.images import load_animation
from .output.addressing import DisplayTarget, build_address_lists
from .output.icmp import build_echo_request, open_icmp_socket
from .output.pool import WorkerPool
from .streaming.scheduler import FrameScheduler


def setup_logging(config, override_level=None):
    """Configure logging based on config settings."""
    log_level_str = override_level.lower() if override_level else config.get("log.level").lower()

    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "warn": logging.WARNING,  # alias
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    logging.basicConfig(
        level=level_map.get(log_level_str, logging.INFO),
        format="[%(levelname)s] [%(name)s] %(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Draw an image on an IPv6 pixel display by pinging it")
    parser.add_argument("--image", required=True, help="Image to ping to the display (path, file:// or http(s) URL)")
    parser.add_argument("--dst-net", default=None, help="Destination network prefix of the display")
    parser.add_argument("-x", type=int, default=None, help="X offset to draw the image at")
    parser.add_argument("-y", type=int, default=None, help="Y offset to draw the image at")
    parser.add_argument("--rate", type=int, default=None, help="How many times to draw each frame per second")
    parser.add_argument("--workers", type=int, default=None, help="Number of sending workers")
    parser.add_argument("--config", default=None, help="Path to YAML/TOML/JSON config file")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warning", "warn", "error", "critical"],
        type=str.lower,
        help="Set logging level (overrides config file)",
    )
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> None:
    """Command line flags win over the config file."""
    overrides = {
        "target.prefix": args.dst_net,
        "target.x": args.x,
        "target.y": args.y,
        "stream.rate": args.rate,
        "stream.workers": args.workers,
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)


async def serve(config: Config, image: str) -> int:
    """Decode, address and stream an image until interrupted. Returns the exit status."""
    logger = logging.getLogger("main")

    rate = int(config.get("stream.rate"))
    workers = int(config.get("stream.workers"))
    if rate <= 0 or workers <= 0:
        logger.error(f"rate and workers must be positive (rate={rate} workers={workers})")
        return 2

    try:
        animation = await load_animation(image, rate=rate)
    except MediaSourceError as e:
        logger.error(f"could not load image: {e}")
        return 1

    target = DisplayTarget.from_config(config)
    address_lists, max_len = build_address_lists(animation.frames, target)
    if max_len == 0:
        logger.error(f"nothing to draw: no visible pixels inside the {target.max_width}x{target.max_height} display")
        return 1

    log_metrics = bool(config.get("log.metrics"))
    log_interval_s = config.get("log.rate_ms") / 1000.0

    queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_len)
    payload = build_echo_request(int(config.get("icmp.id")), int(config.get("icmp.seq")))
    pool = WorkerPool(
        queue,
        payload,
        workers,
        socket_factory=functools.partial(
            open_icmp_socket,
            privileged=bool(config.get("icmp.privileged")),
            sndbuf=int(config.get("icmp.sndbuf")),
        ),
        log_metrics=log_metrics,
        log_interval_s=log_interval_s,
    )
    try:
        pool.open()
    except OSError:
        return 1

    scheduler = FrameScheduler(
        address_lists,
        animation.durations,
        rate,
        queue,
        log_metrics=log_metrics,
        log_interval_s=log_interval_s,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):  # Windows event loops
            loop.add_signal_handler(sig, stop.set)

    pool.start()
    producer = asyncio.create_task(scheduler.run(), name="frame-scheduler")
    failed: list[asyncio.Task] = []
    for task in [producer, *pool.tasks]:
        task.add_done_callback(functools.partial(_on_task_exit, stop=stop, failed=failed))

    try:
        await stop.wait()
        logger.info("exiting...")
    finally:
        producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)
        await pool.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)

    return 1 if failed else 0


def _on_task_exit(task: asyncio.Task, *, stop: asyncio.Event, failed: list) -> None:
    """The scheduler and workers run forever; any exit other than cancellation stops the program."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logging.getLogger("main").error(f"{task.get_name()} crashed: {exc!r}", exc_info=exc)
    else:
        logging.getLogger("main").error(f"{task.get_name()} exited unexpectedly")
    failed.append(task)
    stop.set()


async def main(argv=None) -> int:
    """Main entry point for the pixel pinger."""
    args = build_parser().parse_args(argv)

    config = Config()
    config.load(args.config)
    apply_overrides(config, args)

    setup_logging(config, override_level=args.log_level)
    logger = logging.getLogger("main")
    logger.info(f"loaded config: {config.get()}")

    return await serve(config, args.image)


def _install_event_loop_policy() -> None:
    """Use uvloop when it is installed."""
    logger = logging.getLogger("main")
    if os.name == "nt":
        return
    try:
        import uvloop  # type: ignore[import-not-found]

        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        logger.debug("uvloop enabled")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio loop")


def run():
    """Entry point for setuptools console scripts."""
    _install_event_loop_policy()
    try:
        status = asyncio.run(main())
    except KeyboardInterrupt:
        logging.getLogger("main").info("Shutting down...")
        status = 0
    sys.exit(status)


if __name__ == "__main__":
    run()
