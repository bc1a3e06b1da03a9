"""Console entry-point for the EventSub listener.

Run with:

.. code-block:: bash

    python -m twitch_eventsub --subscribe stream.online:1:1337

This delegates to `twitch_eventsub.entry.main()`.
"""

from twitch_eventsub.entry import main

if __name__ == "__main__":
    main()
