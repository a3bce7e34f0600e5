"""Process entry point: ``python main_driver.py``.

Configures logging, connects to Firestore and runs the Discord bot until it
is stopped.  See :mod:`stats_bridge.runtime` for the wiring.
"""

from stats_bridge.runtime import main


if __name__ == "__main__":
    main()
