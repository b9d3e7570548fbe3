import argparse
import signal

from gi.repository import GLib

from workout_mapper.config import load_config
from workout_mapper.ui import WorkoutMapperApp


def _quit_on_signal(app: WorkoutMapperApp, signum: int) -> None:
    def _handler(*_args) -> bool:
        # Quit through the app so do_shutdown() stops the location loop
        app.quit()
        return GLib.SOURCE_REMOVE

    GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signum, _handler)


def main():
    parser = argparse.ArgumentParser(
        prog="workout-mapper",
        description="Log running and cycling workouts on a map.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete every saved workout before starting. This cannot be undone.",
    )
    args = parser.parse_args()

    app = WorkoutMapperApp(load_config(), reset=args.reset)
    for signum in (signal.SIGINT, signal.SIGTERM):
        _quit_on_signal(app, signum)

    app.run(None)


if __name__ == "__main__":
    main()
