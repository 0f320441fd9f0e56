"""Main entry point and daemon loop for Sunsetter."""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from sunsetter.actuator import create_actuator
from sunsetter.appearance import AppearanceMode
from sunsetter.config import Config, create_default_config, get_default_config_path, get_pid_path
from sunsetter.controller import Controller
from sunsetter.display import create_display, format_boundary, format_clock
from sunsetter.exceptions import AutomationError, AutomationPermissionDenied
from sunsetter.location import create_location_source, get_location_from_ip
from sunsetter.scheduler import Scheduler
from sunsetter.sun_calculator import Coordinate, SunCalculator
from sunsetter.triggers import SystemWatcher, TriggerBus, TriggerKind


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, stream=None):
    """Configure logging for stdout (systemd compatible)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(stream or sys.stdout)]
    )


def build_daemon(config: Config):
    """
    Wire the daemon's components together.

    Args:
        config: Configuration object

    Returns:
        (bus, controller, location_source, watcher)
    """
    sun_calc = SunCalculator(config.timezone)
    bus = TriggerBus(config.triggers)

    scheduler = Scheduler(
        oracle=sun_calc,
        actuator=create_actuator(config),
        display=create_display(config.display_output),
        clock=sun_calc.now,
        on_wake_up=lambda wake_up: bus.post(TriggerKind.TIMER, wake_up),
    )

    location_source = create_location_source(config)
    location_source.subscribe(
        on_location=lambda coordinate: bus.post(TriggerKind.LOCATION, coordinate),
        on_authorization=lambda state: bus.post(TriggerKind.AUTHORIZATION, state),
    )

    controller = Controller(scheduler, location_source, clock=sun_calc.now)
    watcher = SystemWatcher(bus, interval=config.watch_interval)
    return bus, controller, location_source, watcher


def run_daemon(config: Config, verbose: bool = False):
    """
    Run the appearance switching daemon.

    Args:
        config: Configuration object
        verbose: Enable verbose logging
    """
    # Waybar reads updates from stdout
    setup_logging(verbose, stream=sys.stderr if config.display_output == 'waybar' else None)
    logger.info("Starting Sunsetter daemon...")

    bus, controller, location_source, watcher = build_daemon(config)

    # SIGUSR1 toggles, SIGTERM shuts down; both just post to the bus
    signal.signal(signal.SIGUSR1, lambda signum, frame: bus.post(TriggerKind.MANUAL_OVERRIDE))
    signal.signal(signal.SIGTERM, lambda signum, frame: bus.stop())

    pid_path = get_pid_path()
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(str(os.getpid()))

    try:
        location_source.activate()
        if TriggerKind.CLOCK_CHANGE in bus.kinds or TriggerKind.WAKE in bus.kinds:
            watcher.start()
        bus.run(controller.handle)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        watcher.stop()
        location_source.close()
        controller.scheduler.disarm()
        pid_path.unlink(missing_ok=True)


def resolve_coordinate(config: Config) -> Coordinate:
    """Coordinate from the config, or from IP geolocation for the 'ip' source."""
    if config.location_source == 'ip':
        latitude, longitude, _ = get_location_from_ip()
        return Coordinate(latitude, longitude)
    return Coordinate(config.latitude, config.longitude)


def run_once(config: Config, mode: Optional[str] = None):
    """
    Apply the appearance once and exit.

    Args:
        config: Configuration object
        mode: 'light' or 'dark' to force, or None to follow the sun
    """
    setup_logging(verbose=True)

    if mode:
        target = AppearanceMode(mode)
        logger.info(f"Setting appearance: {target.value}")
    else:
        sun_calc = SunCalculator(config.timezone)
        coordinate = resolve_coordinate(config)
        state = sun_calc.solar_state(coordinate, sun_calc.now())
        if state is None:
            logger.error(f"Could not determine the sun's position at {coordinate}")
            sys.exit(1)
        target = AppearanceMode.for_daytime(state.is_daytime)
        logger.info(f"It is {'day' if state.is_daytime else 'night'} at {coordinate}")

    try:
        create_actuator(config).apply(target)
    except AutomationPermissionDenied:
        logger.error("Automation authorization required")
        sys.exit(1)
    except AutomationError:
        logger.error("Failed to set appearance")
        sys.exit(1)


def run_test(config: Config):
    """
    Show current solar state and next boundary (for testing).

    Args:
        config: Configuration object
    """
    setup_logging(verbose=True)

    sun_calc = SunCalculator(config.timezone)
    coordinate = resolve_coordinate(config)
    now = sun_calc.now()
    state = sun_calc.solar_state(coordinate, now)

    print(f"\nCurrent time: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    print(f"Location:     {coordinate}")
    if state is None:
        print("\nSun position unavailable for this location.\n")
        return

    mode = AppearanceMode.for_daytime(state.is_daytime)
    print(f"\nAppearance:   {mode.value}")
    if state.sunrise is None or state.sunset is None:
        print("The sun does not rise or set here today.\n")
        return

    print(f"Sunrise:      {format_clock(state.sunrise)}")
    print(f"Sunset:       {format_clock(state.sunset)}")

    if now < state.sunrise:
        boundary, label = state.sunrise, "rise"
    elif state.is_daytime:
        boundary, label = state.sunset, "set"
    else:
        boundary = sun_calc.sunrise_on(coordinate, sun_calc.next_day(now))
        label = "rise"
        if boundary is None:
            print("\nNo sunrise tomorrow.\n")
            return

    print(f"\nNext: {format_boundary(label, boundary)} ({boundary.strftime('%Y-%m-%d')})")

    time_until = boundary - now
    hours = int(time_until.total_seconds() // 3600)
    minutes = int((time_until.total_seconds() % 3600) // 60)
    print(f"Time until change: {hours}h {minutes}m\n")


def signal_daemon(signum: int) -> bool:
    """
    Send a signal to the running daemon.

    Returns:
        True if the daemon was signalled
    """
    pid_path = get_pid_path()
    try:
        pid = int(pid_path.read_text().strip())
    except (FileNotFoundError, ValueError):
        print("Error: Sunsetter daemon is not running", file=sys.stderr)
        return False

    try:
        os.kill(pid, signum)
    except ProcessLookupError:
        print(f"Error: Stale PID file {pid_path}", file=sys.stderr)
        pid_path.unlink(missing_ok=True)
        return False
    return True


def init_config():
    """Generate a configuration template."""
    config_path = get_default_config_path()

    if config_path.exists():
        response = input(f"Config file already exists at {config_path}. Overwrite? [y/N] ")
        if response.lower() != 'y':
            print("Aborted.")
            return

    create_default_config(config_path)
    print(f"Configuration template created at: {config_path}")
    print("\nPlease check the detected location and appearance backend.")


def cli():
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Sunsetter - Switch light/dark appearance at sunrise and sunset"
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to configuration file (default: ~/.config/sunsetter/config.yaml)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Test command
    subparsers.add_parser('test', help='Show current appearance and next sunrise/sunset')

    # Once command
    once_parser = subparsers.add_parser('once', help='Set appearance once and exit')
    once_parser.add_argument(
        '--mode',
        choices=[mode.value for mode in AppearanceMode],
        help='Specific appearance to set (default: follow the sun)'
    )

    # Daemon control
    subparsers.add_parser('toggle', help='Flip the running daemon to the other appearance')
    subparsers.add_parser('quit', help='Stop the running daemon')

    # Init command
    subparsers.add_parser('init', help='Generate configuration template')

    args = parser.parse_args()

    # Commands that don't need config
    if args.command == 'init':
        init_config()
        return
    if args.command == 'toggle':
        sys.exit(0 if signal_daemon(signal.SIGUSR1) else 1)
    if args.command == 'quit':
        sys.exit(0 if signal_daemon(signal.SIGTERM) else 1)

    # Load configuration
    config_path = args.config or get_default_config_path()

    try:
        config = Config.load(config_path)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        print(f"Run 'sunsetter init' to create a template.", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    # Execute command
    if args.command == 'test':
        run_test(config)
    elif args.command == 'once':
        run_once(config, mode=args.mode)
    else:
        # Default: run daemon
        run_daemon(config, verbose=args.verbose)


if __name__ == '__main__':
    cli()
